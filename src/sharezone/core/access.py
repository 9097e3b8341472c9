"""Access Gate: per-visit state machine deciding whether a share may be downloaded.

A visit starts in LOADING and ends in ERROR or READY, possibly passing through
PASSWORD_REQUIRED:

    LOADING -> ERROR | PASSWORD_REQUIRED | READY
    PASSWORD_REQUIRED -> READY | PASSWORD_REQUIRED (with error)

ERROR and READY are final for the visit; a new visit starts a new session.
The gate never mutates the share policy. Wall-clock time comes from an
injectable ``clock`` so sessions can be tested without sleeping.

Failed password submissions are rate limited per share id by a
PasswordAttemptLimiter shared across sessions of the same AccessGate.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from .exceptions import (
    AccessGateError,
    PasswordAttemptsExceeded,
    PasswordIncorrect,
    ShareExpired,
    ShareLookupFailed,
    ShareNotFound,
)
from .interfaces import MetadataStore
from .models import FileRecord, utcnow
from ..security.passwords import SharePasswordHasher, get_hasher

logger = logging.getLogger(__name__)


class AccessState(enum.Enum):
    LOADING = "loading"
    ERROR = "error"
    PASSWORD_REQUIRED = "password"
    READY = "ready"


class PasswordAttemptLimiter:
    """Rolling-window failure counter keyed by share id.

    After ``max_attempts`` failures within ``window_seconds`` of the first one,
    further submissions are refused until the window has passed. A submission
    counts as a failure from the moment it is made; a success clears the counter. ``max_attempts=None`` disables limiting.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = 5,
        window_seconds: float = 300,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = float(window_seconds)
        self._monotonic = monotonic
        self._failures: Dict[str, Tuple[int, float]] = {}

    def _current(self, share_id: str) -> Tuple[int, float]:
        count, first = self._failures.get(share_id, (0, 0.0))
        if count and self._monotonic() - first > self.window_seconds:
            # window expired, start over
            self._failures.pop(share_id, None)
            return 0, 0.0
        return count, first

    def _prune(self) -> None:
        now = self._monotonic()
        expired = [k for k, (_, first) in self._failures.items() if now - first > self.window_seconds]
        for share_id in expired:
            del self._failures[share_id]

    def check(self, share_id: str) -> Tuple[bool, int]:
        """Return (allowed, retry_after_seconds)."""
        if self.max_attempts is None:
            return True, 0
        count, first = self._current(share_id)
        if count >= self.max_attempts:
            retry_after = int(self.window_seconds - (self._monotonic() - first)) + 1
            return False, max(retry_after, 1)
        return True, 0

    def record_failure(self, share_id: str) -> int:
        """Count a failure; returns attempts remaining in this window."""
        if self.max_attempts is None:
            return -1
        self._prune()
        count, first = self._current(share_id)
        if count == 0:
            first = self._monotonic()
        count += 1
        self._failures[share_id] = (count, first)
        return max(self.max_attempts - count, 0)

    def reserve(self, share_id: str) -> Tuple[bool, int]:
        """Check and count one attempt in a single step.

        The attempt counts as a failure until ``reset`` releases it.
        """
        allowed, retry_after = self.check(share_id)
        if allowed:
            self.record_failure(share_id)
        return allowed, retry_after

    def reset(self, share_id: str) -> None:
        self._failures.pop(share_id, None)


class AccessSession:
    """One visit to one share id."""

    def __init__(
        self,
        share_id: Optional[str],
        metadata_store: MetadataStore,
        *,
        clock: Optional[Callable] = None,
        hasher: Optional[SharePasswordHasher] = None,
        limiter: Optional[PasswordAttemptLimiter] = None,
    ):
        self.share_id = share_id
        self.metadata_store = metadata_store
        self.clock = clock or utcnow
        self.hasher = hasher or get_hasher()
        self.limiter = limiter or PasswordAttemptLimiter(max_attempts=None)

        self.state = AccessState.LOADING
        self.error: Optional[AccessGateError] = None
        self.file: Optional[FileRecord] = None
        self.attempts = 0

    @property
    def is_ready(self) -> bool:
        return self.state is AccessState.READY

    @property
    def message(self) -> Optional[str]:
        """User-facing text for the current error, if any."""
        return self.error.message if self.error else None

    def _fail(self, error: AccessGateError) -> AccessState:
        self.state = AccessState.ERROR
        self.error = error
        self.file = None
        return self.state

    async def load(self) -> AccessState:
        """Resolve the share id and evaluate the policy (LOADING -> ...)."""
        if self.state is not AccessState.LOADING:
            return self.state

        if not self.share_id:
            return self._fail(ShareNotFound("Invalid share link. No Share ID provided."))

        try:
            record = await self.metadata_store.get_file_by_share_id(self.share_id)
        except Exception:
            logger.exception("share lookup failed for %s", self.share_id)
            return self._fail(ShareLookupFailed())

        policy = record.share_policy if record is not None else None
        if policy is None:
            return self._fail(ShareNotFound())

        if policy.is_expired(self.clock()):
            return self._fail(ShareExpired())

        self.file = record
        if policy.requires_password:
            self.state = AccessState.PASSWORD_REQUIRED
        else:
            self.state = AccessState.READY
        return self.state

    async def submit_password(self, password: str) -> AccessState:
        """Check a recipient's password. Only meaningful in PASSWORD_REQUIRED."""
        if self.state is not AccessState.PASSWORD_REQUIRED:
            logger.debug("password submitted in state %s; ignoring", self.state.value)
            return self.state

        self.attempts += 1
        allowed, retry_after = self.limiter.reserve(self.share_id)
        if not allowed:
            self.error = PasswordAttemptsExceeded(retry_after)
            return self.state

        matched = await asyncio.to_thread(self.hasher.verify, self.file.share_password, password)
        if matched:
            self.limiter.reset(self.share_id)
            self.error = None
            self.state = AccessState.READY
            logger.info("share %s unlocked", self.share_id)
        else:
            self.error = PasswordIncorrect()
            logger.info("wrong password for share %s (attempt %d)", self.share_id, self.attempts)
        return self.state


class AccessGate:
    """Factory for AccessSessions that share one password-attempt limiter."""

    def __init__(
        self,
        metadata_store: MetadataStore,
        *,
        clock: Optional[Callable] = None,
        hasher: Optional[SharePasswordHasher] = None,
        limiter: Optional[PasswordAttemptLimiter] = None,
    ):
        self.metadata_store = metadata_store
        self.clock = clock
        self.hasher = hasher
        self.limiter = limiter or PasswordAttemptLimiter()

    def session(self, share_id: Optional[str]) -> AccessSession:
        return AccessSession(
            share_id,
            self.metadata_store,
            clock=self.clock,
            hasher=self.hasher,
            limiter=self.limiter,
        )

    async def open(self, share_id: Optional[str]) -> AccessSession:
        """Start a visit and run the LOADING step."""
        session = self.session(share_id)
        await session.load()
        return session
