"""Self-describing AES-256-GCM ciphertext envelope with a compact binary header.

Header layout (binary, all big-endian):
- 4 bytes: magic b'SZE1'
- 1 byte: version (1)
- 1 byte: alg_id (1 = AES-256-GCM)
- 4 bytes: block_size (unsigned int)
- 8 bytes: sig_bytes, the exact plaintext length (unsigned long long)
- 4 bytes: record_count (unsigned int)
- 1 byte: len_nonce_seed (L)
- L bytes: nonce_seed

Body: record_count records, each a 4-byte big-endian ciphertext length followed
by the ciphertext (GCM tag included). Record ``i`` is encrypted with nonce
SHA-256(nonce_seed || i)[:12] and associated data header || i || final_flag, so
records cannot be reordered, dropped or moved between envelopes.

There is always at least one record; an empty payload is sealed as one empty
final record so that a wrong key fails even when there is nothing to decrypt.
The key is never written into the envelope.
"""
import hashlib
import os
import struct
from typing import Iterator, NamedTuple, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from sharezone.core.exceptions import DecryptionFailed, EntropySourceUnavailable
from sharezone.security.codec import BlockSequence
from sharezone.security.keys import KEY_SIZE


MAGIC = b"SZE1"
VERSION = 1
ALG_ID_AESGCM = 1
NONCE_SEED_SIZE = 16
TAG_SIZE = 16

_FIXED_HEADER = struct.Struct(">4sBBIQI")
_RECORD_LEN = struct.Struct(">I")


class EnvelopeHeader(NamedTuple):
    version: int
    alg_id: int
    block_size: int
    sig_bytes: int
    record_count: int
    nonce_seed: bytes

    def pack(self) -> bytes:
        header = bytearray()
        header += _FIXED_HEADER.pack(
            MAGIC, self.version, self.alg_id, self.block_size, self.sig_bytes, self.record_count
        )
        header += struct.pack("B", len(self.nonce_seed))
        header += self.nonce_seed
        return bytes(header)


def _make_nonce(seed: bytes, record_index: int) -> bytes:
    # 12-byte nonce from SHA-256(seed || record_index)
    h = hashlib.sha256()
    h.update(seed)
    h.update(record_index.to_bytes(8, "big"))
    return h.digest()[:12]


def _make_ad(header: bytes, record_index: int, final: bool) -> bytes:
    return header + record_index.to_bytes(8, "big") + (b"\x01" if final else b"\x00")


def _new_nonce_seed() -> bytes:
    try:
        return os.urandom(NONCE_SEED_SIZE)
    except (NotImplementedError, OSError) as exc:
        raise EntropySourceUnavailable(f"OS random source unavailable: {exc}") from exc


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise ValueError(f"key must be {KEY_SIZE} bytes")


def seal(blocks: BlockSequence, key: bytes) -> bytes:
    """Encrypt a block sequence under ``key`` into a single envelope."""
    _check_key(key)
    plain_records = list(blocks.blocks) or [b""]
    nonce_seed = _new_nonce_seed()
    header = EnvelopeHeader(
        version=VERSION,
        alg_id=ALG_ID_AESGCM,
        block_size=blocks.block_size,
        sig_bytes=blocks.sig_bytes,
        record_count=len(plain_records),
        nonce_seed=nonce_seed,
    ).pack()

    aead = AESGCM(bytes(key))
    out = bytearray(header)
    last = len(plain_records) - 1
    for index, chunk in enumerate(plain_records):
        nonce = _make_nonce(nonce_seed, index)
        ct = aead.encrypt(nonce, chunk, _make_ad(header, index, index == last))
        out += _RECORD_LEN.pack(len(ct))
        out += ct
    return bytes(out)


def parse_header(envelope: bytes) -> Tuple[EnvelopeHeader, int]:
    """Parse and validate the header; returns (header, offset of the first record)."""
    if len(envelope) < _FIXED_HEADER.size + 1:
        raise DecryptionFailed("envelope too short to contain a header")
    magic, version, alg_id, block_size, sig_bytes, record_count = _FIXED_HEADER.unpack_from(envelope, 0)
    if magic != MAGIC:
        raise DecryptionFailed("invalid envelope format (magic mismatch)")
    if version != VERSION:
        raise DecryptionFailed(f"unsupported envelope version {version}")
    if alg_id != ALG_ID_AESGCM:
        raise DecryptionFailed(f"unsupported algorithm id {alg_id}")
    if block_size == 0 or record_count == 0:
        raise DecryptionFailed("malformed envelope header")

    offset = _FIXED_HEADER.size
    seed_len = envelope[offset]
    offset += 1
    nonce_seed = envelope[offset:offset + seed_len]
    if seed_len != NONCE_SEED_SIZE or len(nonce_seed) != seed_len:
        raise DecryptionFailed("malformed nonce seed")
    offset += seed_len
    header = EnvelopeHeader(version, alg_id, block_size, sig_bytes, record_count, nonce_seed)
    return header, offset


def _iter_records(envelope: bytes, offset: int, record_count: int) -> Iterator[bytes]:
    for _ in range(record_count):
        len_bytes = envelope[offset:offset + _RECORD_LEN.size]
        if len(len_bytes) < _RECORD_LEN.size:
            raise DecryptionFailed("truncated envelope (missing record)")
        (ct_len,) = _RECORD_LEN.unpack(len_bytes)
        offset += _RECORD_LEN.size
        ct = envelope[offset:offset + ct_len]
        if len(ct) != ct_len or ct_len < TAG_SIZE:
            raise DecryptionFailed("truncated ciphertext record")
        offset += ct_len
        yield ct
    if offset != len(envelope):
        raise DecryptionFailed("unexpected trailing data after final record")


def open_envelope(envelope: bytes, key: bytes) -> BlockSequence:
    """Authenticate and decrypt an envelope back into its block sequence."""
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise DecryptionFailed(f"key must be {KEY_SIZE} bytes")
    envelope = bytes(envelope)
    header, offset = parse_header(envelope)
    raw_header = envelope[:offset]

    aead = AESGCM(bytes(key))
    blocks = []
    last = header.record_count - 1
    for index, ct in enumerate(_iter_records(envelope, offset, header.record_count)):
        nonce = _make_nonce(header.nonce_seed, index)
        try:
            blocks.append(aead.decrypt(nonce, ct, _make_ad(raw_header, index, index == last)))
        except InvalidTag as exc:
            raise DecryptionFailed("authentication failed (wrong key or corrupted data)") from exc

    if header.sig_bytes == 0:
        blocks = [b for b in blocks if b]
    try:
        return BlockSequence(tuple(blocks), header.block_size, header.sig_bytes)
    except ValueError as exc:
        raise DecryptionFailed(f"decrypted blocks do not match the header: {exc}") from exc
