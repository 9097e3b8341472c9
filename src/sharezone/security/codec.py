"""Payload codec: byte buffers <-> fixed-width block sequences.

The encryption engine works block by block. A payload is cut into blocks of
``block_size`` bytes; the final block carries only the remainder, and the
exact payload length travels alongside as ``sig_bytes`` so the original
buffer is recovered exactly, including the empty buffer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

DEFAULT_BLOCK_SIZE = 64 * 1024
DEFAULT_MIME_TYPE = "application/octet-stream"

BytesLike = Union[bytes, bytearray, memoryview]


class Blob(bytes):
    """Bytes tagged with a MIME type. Compares equal to the plain bytes."""

    def __new__(cls, data: BytesLike = b"", mime_type: Optional[str] = None):
        obj = super().__new__(cls, data)
        obj.mime_type = mime_type or DEFAULT_MIME_TYPE
        return obj

    def __repr__(self):
        return f"Blob(size={len(self)}, mime_type={self.mime_type!r})"


@dataclass(frozen=True)
class BlockSequence:
    blocks: Tuple[bytes, ...]
    block_size: int
    sig_bytes: int

    def __post_init__(self):
        if self.block_size <= 0:
            raise ValueError("block_size must be positive")
        if self.sig_bytes < 0:
            raise ValueError("sig_bytes must not be negative")
        for block in self.blocks[:-1]:
            if len(block) != self.block_size:
                raise ValueError("only the final block may be shorter than block_size")
        if self.blocks and len(self.blocks[-1]) > self.block_size:
            raise ValueError("final block is wider than block_size")

    def __len__(self):
        return len(self.blocks)


def to_block_sequence(data: BytesLike, block_size: int = DEFAULT_BLOCK_SIZE) -> BlockSequence:
    if block_size <= 0:
        raise ValueError("block_size must be positive")
    view = memoryview(data).cast("B")
    blocks = tuple(
        bytes(view[offset:offset + block_size])
        for offset in range(0, len(view), block_size)
    )
    return BlockSequence(blocks=blocks, block_size=block_size, sig_bytes=len(view))


def from_block_sequence(sequence: BlockSequence, mime_hint: Optional[str] = None) -> Blob:
    """Join a block sequence back into a Blob of exactly ``sig_bytes`` bytes."""
    joined = b"".join(sequence.blocks)
    if len(joined) < sequence.sig_bytes:
        raise ValueError(
            f"block sequence holds {len(joined)} bytes, expected {sequence.sig_bytes}"
        )
    return Blob(joined[:sequence.sig_bytes], mime_hint)
