"""
Unit tests for the encryption engine (encrypt/decrypt workflow).
"""

import pytest

from sharezone.core.exceptions import DecryptionFailed
from sharezone.security.codec import Blob
from sharezone.security.encryption import decrypt, decrypt_async, encrypt, encrypt_async
from sharezone.security.keys import KEY_SIZE, generate_key


# ==============================================================================
# Tests: Round trip
# ==============================================================================

@pytest.mark.parametrize("size", [0, 1, 15, 16, 17, 1000])
def test_round_trip_sizes(size):
    """Empty, sub-block, aligned and unaligned payloads come back exactly."""
    plaintext = bytes(i % 251 for i in range(size))
    ciphertext, key = encrypt(plaintext, block_size=16)

    assert len(key) == KEY_SIZE
    assert decrypt(ciphertext, key) == plaintext


def test_ciphertext_differs_from_plaintext():
    plaintext = b"quarterly report " * 64
    ciphertext, _ = encrypt(plaintext)

    assert plaintext not in ciphertext
    assert ciphertext != plaintext


def test_fresh_key_per_call():
    ct1, key1 = encrypt(b"same")
    ct2, key2 = encrypt(b"same")
    assert key1 != key2
    assert ct1 != ct2


def test_decrypt_returns_blob_with_mime_hint():
    ciphertext, key = encrypt(b"<html></html>")
    blob = decrypt(ciphertext, key, mime_hint="text/html")

    assert isinstance(blob, Blob)
    assert blob.mime_type == "text/html"


# ==============================================================================
# Tests: Failure modes
# ==============================================================================

def test_wrong_key_fails():
    """A different key never yields plaintext."""
    ciphertext, _ = encrypt(b"secret contents")
    with pytest.raises(DecryptionFailed):
        decrypt(ciphertext, generate_key())


def test_corrupted_ciphertext_fails():
    ciphertext, key = encrypt(b"secret contents")
    corrupted = bytearray(ciphertext)
    corrupted[len(corrupted) // 2] ^= 0xFF
    with pytest.raises(DecryptionFailed):
        decrypt(bytes(corrupted), key)


def test_garbage_input_fails():
    with pytest.raises(DecryptionFailed):
        decrypt(b"not an envelope at all", generate_key())


# ==============================================================================
# Tests: Async wrappers
# ==============================================================================

@pytest.mark.asyncio
async def test_async_round_trip():
    ciphertext, key = await encrypt_async(b"async payload", 4)
    assert await decrypt_async(ciphertext, key) == b"async payload"


@pytest.mark.asyncio
async def test_async_wrong_key():
    ciphertext, _ = await encrypt_async(b"async payload")
    with pytest.raises(DecryptionFailed):
        await decrypt_async(ciphertext, generate_key())
