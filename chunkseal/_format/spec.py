"""
Outboard Format Specification.

Layout:
    [8 bytes]   content length L, little-endian u64
    [64 bytes]  parent record: left cv (32) + right cv (32)   } N - 1 records,
    ...                                                       } pre-order
Raw content bytes never appear in an outboard.

Tree shape:
    N = max(1, ceil(L / C)) chunks of C bytes (the last may be shorter).
    A subtree of n > C bytes splits into a left subtree holding the largest
    power-of-two number of whole chunks strictly below n, and a right subtree
    with the rest. The tree is therefore left-full, and the shape is fully
    determined by L and C.

Slice layout (same header, then pre-order):
    parent records of every subtree overlapping the window, interleaved with
    the raw bytes of every overlapping chunk.

C is a protocol constant shared by producer and consumer. Changing it
changes every outboard; it is never inferred from the data.
"""

from __future__ import annotations

import struct

from chunkseal import LENGTH_HEADER_SIZE, MIN_CHUNK_SIZE, PARENT_SIZE

HEADER_STRUCT = struct.Struct("<Q")  # little-endian u64 content length

MAX_CONTENT_LENGTH = 2**64 - 1


def validate_chunk_size(chunk_size: int) -> None:
    """Reject chunk sizes that are not a power of two >= MIN_CHUNK_SIZE."""
    if (
        not isinstance(chunk_size, int)
        or isinstance(chunk_size, bool)
        or chunk_size < MIN_CHUNK_SIZE
        or chunk_size & (chunk_size - 1)
    ):
        raise ValueError(
            f"Chunk size must be a power of two >= {MIN_CHUNK_SIZE}, got {chunk_size!r}"
        )


def encode_length(content_length: int) -> bytes:
    if not 0 <= content_length <= MAX_CONTENT_LENGTH:
        raise ValueError(f"Content length out of range: {content_length}")
    return HEADER_STRUCT.pack(content_length)


def decode_length(header: bytes) -> int:
    return HEADER_STRUCT.unpack(header)[0]


def chunk_count(content_length: int, chunk_size: int) -> int:
    """Number of leaves. Empty content still has one (empty) chunk."""
    if content_length == 0:
        return 1
    return (content_length + chunk_size - 1) // chunk_size


def parent_count(content_length: int, chunk_size: int) -> int:
    return chunk_count(content_length, chunk_size) - 1


def outboard_size(content_length: int, chunk_size: int) -> int:
    """Exact outboard size in bytes for content of the given length."""
    return LENGTH_HEADER_SIZE + PARENT_SIZE * parent_count(content_length, chunk_size)


def left_len(subtree_len: int, chunk_size: int) -> int:
    """Bytes in the left child of a subtree holding subtree_len > chunk_size bytes."""
    if subtree_len <= chunk_size:
        raise ValueError(f"A subtree of {subtree_len} bytes has no children")
    full_chunks = (subtree_len - 1) // chunk_size
    return chunk_size * (1 << (full_chunks.bit_length() - 1))


def tree_depth(content_length: int, chunk_size: int) -> int:
    """Parent levels above the leaves: ceil(log2(N)), 0 for a single chunk."""
    return (chunk_count(content_length, chunk_size) - 1).bit_length()
