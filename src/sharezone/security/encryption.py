"""
Encryption engine for ShareZone file payloads.

One workflow only:

- ``encrypt(plaintext)`` draws a fresh per-file key, cuts the payload into
  blocks (:mod:`sharezone.security.codec`) and seals them into a
  self-describing envelope (:mod:`sharezone.security.crypto`).
- ``decrypt(ciphertext, key)`` authenticates the envelope before returning
  anything; a wrong key, a flipped bit or a truncated blob raises
  :class:`~sharezone.core.exceptions.DecryptionFailed`.

Failures are never transient, so nothing here retries.

Trust boundary: the key is persisted next to the file metadata, so this
protects payloads against object-store-only access, not against anyone who
can read the metadata record.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

from sharezone.core.exceptions import DecryptionFailed
from .codec import DEFAULT_BLOCK_SIZE, Blob, BytesLike, to_block_sequence, from_block_sequence
from .crypto import seal, open_envelope
from .keys import generate_key

logger = logging.getLogger(__name__)


def encrypt(plaintext: BytesLike, block_size: int = DEFAULT_BLOCK_SIZE) -> Tuple[bytes, bytes]:
    """
    Encrypt ``plaintext`` under a newly generated key.

    Returns ``(ciphertext, key)``. The ciphertext is opaque and suitable for
    storage as a binary object; the key must be persisted out-of-band.
    """
    key = generate_key()
    blocks = to_block_sequence(plaintext, block_size=block_size)
    ciphertext = seal(blocks, key)
    logger.debug(
        "encrypted %d bytes into %d-byte envelope (%d blocks)",
        blocks.sig_bytes, len(ciphertext), len(blocks),
    )
    return ciphertext, key


def decrypt(ciphertext: BytesLike, key: bytes, mime_hint: Optional[str] = None) -> Blob:
    """
    Decrypt an envelope produced by :func:`encrypt`.

    Integrity is verified before any plaintext is returned.
    """
    blocks = open_envelope(ciphertext, key)
    try:
        return from_block_sequence(blocks, mime_hint)
    except ValueError as exc:
        raise DecryptionFailed(str(exc)) from exc


async def encrypt_async(plaintext: BytesLike, block_size: int = DEFAULT_BLOCK_SIZE) -> Tuple[bytes, bytes]:
    # CPU-bound; keep it off the event loop
    return await asyncio.to_thread(encrypt, plaintext, block_size)


async def decrypt_async(ciphertext: BytesLike, key: bytes, mime_hint: Optional[str] = None) -> Blob:
    return await asyncio.to_thread(decrypt, ciphertext, key, mime_hint)
