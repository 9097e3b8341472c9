"""Security helpers: per-file keys, payload codec and envelope encryption for ShareZone.

This package provides:
- per-file 256-bit key generation
- fixed-width block codec with exact length tracking
- AES-256-GCM envelope encryption/decryption
- Argon2id hashing for share passwords
"""

from .keys import generate_key, key_to_hex, key_from_hex, KEY_SIZE
from .codec import Blob, BlockSequence, to_block_sequence, from_block_sequence
from .encryption import encrypt, decrypt, encrypt_async, decrypt_async
from .passwords import SharePasswordHasher, hash_share_password, verify_share_password

__all__ = [
    "generate_key",
    "key_to_hex",
    "key_from_hex",
    "KEY_SIZE",
    "Blob",
    "BlockSequence",
    "to_block_sequence",
    "from_block_sequence",
    "encrypt",
    "decrypt",
    "encrypt_async",
    "decrypt_async",
    "SharePasswordHasher",
    "hash_share_password",
    "verify_share_password",
]
