"""Per-file symmetric key generation and its hex form for the metadata store."""

import os
import binascii

from sharezone.core.exceptions import EntropySourceUnavailable, DecryptionFailed

# 256-bit AES key
KEY_SIZE = 32


def generate_key() -> bytes:
    """Return KEY_SIZE fresh random bytes from the OS CSPRNG.

    Raises EntropySourceUnavailable when the platform source cannot be read.
    There is no fallback to a weaker generator.
    """
    try:
        key = os.urandom(KEY_SIZE)
    except (NotImplementedError, OSError) as exc:
        raise EntropySourceUnavailable(f"OS random source unavailable: {exc}") from exc
    if len(key) != KEY_SIZE:
        raise EntropySourceUnavailable("OS random source returned a short read")
    return key


def key_to_hex(key: bytes) -> str:
    return key.hex()


def key_from_hex(value: str) -> bytes:
    """Parse a persisted hex key; malformed values surface as DecryptionFailed."""
    try:
        key = bytes.fromhex(value)
    except (TypeError, ValueError, binascii.Error) as exc:
        raise DecryptionFailed("stored encryption key is not valid hex") from exc
    if len(key) != KEY_SIZE:
        raise DecryptionFailed(f"stored encryption key must be {KEY_SIZE} bytes, got {len(key)}")
    return key
