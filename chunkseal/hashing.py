"""
BLAKE3 hashing — tree node rule plus plain whole-buffer/file digests.

Domain separation (one prefix byte per node kind):
    Chunk:        BLAKE3(0x00 + u64le(index) + chunk)
    Parent:       BLAKE3(0x01 + left + right)
    Root chunk:   BLAKE3(0x02 + chunk)                       (single-chunk content)
    Root parent:  BLAKE3(0x03 + u64le(length) + left + right)

Chunk hashes bind their position, so identical bytes at two offsets never
share a leaf. The root binds the total content length, which makes the
length header of an outboard authenticated by the root fingerprint.
"""

from __future__ import annotations

import struct
from pathlib import Path

import blake3

from chunkseal import FILE_HASH_READ_SIZE, HASH_SIZE
from chunkseal.errors import SourceReadError


_CHUNK_PREFIX = b"\x00"
_PARENT_PREFIX = b"\x01"
_ROOT_CHUNK_PREFIX = b"\x02"
_ROOT_PARENT_PREFIX = b"\x03"

_U64 = struct.Struct("<Q")


def hash_chunk(data: bytes, index: int, *, is_root: bool = False) -> bytes:
    """Hash one chunk of content.

    Args:
        data: The chunk bytes (at most one chunk size long).
        index: 0-based chunk index within the content.
        is_root: True when the chunk is the whole content (N = 1).

    Returns:
        32-byte chaining value, or the root fingerprint when is_root.
    """
    if is_root:
        if index != 0:
            raise ValueError(f"Root chunk must have index 0, got {index}")
        hasher = blake3.blake3(_ROOT_CHUNK_PREFIX)
    else:
        hasher = blake3.blake3(_CHUNK_PREFIX)
        hasher.update(_U64.pack(index))
    hasher.update(data)
    return hasher.digest()


def hash_parent(left: bytes, right: bytes, *, root_length: int | None = None) -> bytes:
    """Hash two child chaining values into their parent.

    Passing root_length marks the node as the root and binds the total
    content length into it.
    """
    if len(left) != HASH_SIZE or len(right) != HASH_SIZE:
        raise ValueError(f"Child hashes must be {HASH_SIZE} bytes")
    if root_length is None:
        return blake3.blake3(_PARENT_PREFIX + left + right).digest()
    return blake3.blake3(
        _ROOT_PARENT_PREFIX + _U64.pack(root_length) + left + right
    ).digest()


# Fingerprint of empty content: the root chunk over zero bytes
EMPTY_ROOT: bytes = hash_chunk(b"", 0, is_root=True)


def hash_blake3(data: bytes) -> bytes:
    """Plain BLAKE3 digest of a whole buffer (no tree, no prefixes)."""
    return blake3.blake3(data).digest()


def hash_blake3_file(path: str | Path) -> bytes:
    """Plain BLAKE3 digest of a file, read in 1 MiB blocks.

    Raises:
        SourceReadError: If the file cannot be opened or read.
    """
    hasher = blake3.blake3()
    try:
        with open(path, "rb") as f:
            while True:
                block = f.read(FILE_HASH_READ_SIZE)
                if not block:
                    break
                hasher.update(block)
    except OSError as e:
        raise SourceReadError(f"Failed to read {path}: {e}") from e
    return hasher.digest()
