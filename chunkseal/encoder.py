"""
Tree builder — root fingerprint + outboard for a whole content blob.

Content is consumed left to right in read buffers of any size; it is cut into
fixed-size chunks independently of those buffers, so the read size never
changes the result.

Subtrees are kept on a stack. A finished chunk is pushed only once a later
byte proves it is not the last one, and complete sibling subtrees are merged
at that moment (lazy merging). Nothing merged early can therefore be the
root, and the root flag is applied exactly once, in finalize(). Each stack
entry carries its own parent records in pre-order, so the outboard comes
out in pre-order without a second pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from chunkseal import DEFAULT_READ_SIZE, LENGTH_HEADER_SIZE
from chunkseal._format.spec import chunk_count, decode_length, validate_chunk_size
from chunkseal._format.writer import OutboardWriter
from chunkseal.errors import SourceReadError
from chunkseal.hashing import hash_chunk, hash_parent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodeResult:
    """Root fingerprint and detached outboard for one content blob.

    Attributes:
        hash: 32-byte root fingerprint. Publish through a trusted channel.
        outboard: Length header + pre-order parent records.
    """

    hash: bytes
    outboard: bytes

    @property
    def hash_hex(self) -> str:
        return self.hash.hex()

    @property
    def content_length(self) -> int:
        return decode_length(self.outboard[:LENGTH_HEADER_SIZE])


@dataclass
class _Subtree:
    cv: bytes
    parents: list[bytes] = field(default_factory=list)


def _merge(left: _Subtree, right: _Subtree) -> _Subtree:
    """Join two non-root subtrees under a new parent."""
    record = left.cv + right.cv
    return _Subtree(
        cv=hash_parent(left.cv, right.cv),
        parents=[record] + left.parents + right.parents,
    )


class OutboardEncoder:
    """Incremental tree builder.

    Usage:
        encoder = OutboardEncoder(chunk_size=262144)
        for block in blocks:
            encoder.update(block)
        result = encoder.finalize()
    """

    def __init__(self, *, chunk_size: int) -> None:
        validate_chunk_size(chunk_size)
        self._chunk_size = chunk_size
        self._buf = bytearray()
        self._chunk_index = 0
        self._stack: list[_Subtree] = []
        self._length = 0
        self._result: EncodeResult | None = None

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def bytes_consumed(self) -> int:
        return self._length

    def update(self, data: bytes) -> None:
        """Feed the next bytes of content."""
        if self._result is not None:
            raise RuntimeError("Encoder already finalized")
        view = memoryview(data).cast("B")
        while view:
            if len(self._buf) == self._chunk_size:
                # More content follows, so the buffered chunk is not the root
                self._push_chunk()
            take = min(self._chunk_size - len(self._buf), len(view))
            self._buf += view[:take]
            view = view[take:]
            self._length += take

    def _push_chunk(self) -> None:
        subtree = _Subtree(cv=hash_chunk(bytes(self._buf), self._chunk_index))
        self._buf.clear()
        self._chunk_index += 1

        # Merge while the chunk total has a trailing zero bit: each one marks
        # a completed power-of-two subtree on the stack.
        total = self._chunk_index
        while total & 1 == 0:
            subtree = _merge(self._stack.pop(), subtree)
            total >>= 1
        self._stack.append(subtree)

    def finalize(self) -> EncodeResult:
        """Finish the tree. Idempotent; further update() calls raise."""
        if self._result is not None:
            return self._result

        last = bytes(self._buf)
        if not self._stack:
            root = hash_chunk(last, 0, is_root=True)
            parents: list[bytes] = []
        else:
            right = _Subtree(cv=hash_chunk(last, self._chunk_index))
            while len(self._stack) > 1:
                right = _merge(self._stack.pop(), right)
            left = self._stack.pop()
            root = hash_parent(left.cv, right.cv, root_length=self._length)
            parents = [left.cv + right.cv] + left.parents + right.parents

        outboard = OutboardWriter.serialize(self._length, parents, self._chunk_size)
        self._buf.clear()
        self._result = EncodeResult(hash=root, outboard=outboard)

        log.debug(
            "Encoded %d bytes: %d chunks, %d outboard bytes, root %s",
            self._length,
            chunk_count(self._length, self._chunk_size),
            len(outboard),
            root.hex(),
        )
        return self._result


def encode_stream(
    reader: BinaryIO,
    *,
    chunk_size: int,
    read_size: int = DEFAULT_READ_SIZE,
) -> EncodeResult:
    """Build the tree over a readable stream, consuming it to exhaustion.

    Raises:
        SourceReadError: If reading fails. No partial result is returned.
    """
    if read_size <= 0:
        raise ValueError(f"Read size must be positive, got {read_size}")
    encoder = OutboardEncoder(chunk_size=chunk_size)
    while True:
        try:
            block = reader.read(read_size)
        except OSError as e:
            raise SourceReadError(
                f"Content read failed after {encoder.bytes_consumed} bytes: {e}"
            ) from e
        if not block:
            break
        encoder.update(block)
    return encoder.finalize()


def encode_bytes(data: bytes, *, chunk_size: int) -> EncodeResult:
    """Build the tree over an in-memory buffer."""
    encoder = OutboardEncoder(chunk_size=chunk_size)
    encoder.update(data)
    return encoder.finalize()


def encode_file(
    path: str | Path,
    *,
    chunk_size: int,
    read_size: int = DEFAULT_READ_SIZE,
) -> EncodeResult:
    """Build the tree over a file.

    Raises:
        SourceReadError: If the file cannot be opened or read.
    """
    try:
        f = open(path, "rb")
    except OSError as e:
        raise SourceReadError(f"Cannot open {path}: {e}") from e
    with f:
        return encode_stream(f, chunk_size=chunk_size, read_size=read_size)
