"""Share-password hashing with Argon2id.

Share passwords are never stored in clear. The owner's password is hashed
with argon2-cffi's PasswordHasher when the share is created, and a
recipient's submission is checked with the library's verify path.
"""
import logging
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

logger = logging.getLogger(__name__)


class SharePasswordHasher:
    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 1):
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, password: str) -> str:
        """Return an encoded Argon2id hash (salt and parameters included)."""
        if not password:
            raise ValueError("cannot hash an empty share password")
        return self._hasher.hash(password)

    def verify(self, stored_hash: Optional[str], candidate: str) -> bool:
        """Return True when ``candidate`` matches ``stored_hash``.

        A stored value that is not an Argon2 hash never matches.
        """
        if not stored_hash or candidate is None:
            return False
        try:
            return self._hasher.verify(stored_hash, candidate)
        except InvalidHashError:
            logger.warning("stored share password is not a valid argon2 hash; rejecting")
            return False
        except VerificationError:
            return False


_default_hasher = SharePasswordHasher()


def get_hasher() -> SharePasswordHasher:
    return _default_hasher


def hash_share_password(password: str) -> str:
    return get_hasher().hash(password)


def verify_share_password(stored_hash: Optional[str], candidate: str) -> bool:
    return get_hasher().verify(stored_hash, candidate)
