"""
Reader — forward-only access to outboard and slice bytes.

Everything in this package reads its inputs strictly left to right:
  - ForwardCursor exposes read() and a forward-only skip_to(), and has no
    seek at all. Moving backwards is a caller bug and raises ValueError.
  - OutboardReader parses the length header and parent records on top of a
    cursor. Any short read is reported as MalformedOutboard, never as an
    out-of-bounds access.

A caller that already holds exactly the bytes of one chunk passes them with
position=<offset of that chunk>; the cursor then behaves as if it were
positioned inside the full content without pretending to support random
access.
"""

from __future__ import annotations

from typing import BinaryIO, Union

from chunkseal import HASH_SIZE, LENGTH_HEADER_SIZE, PARENT_SIZE
from chunkseal._format.spec import decode_length, parent_count
from chunkseal.errors import MalformedOutboard

Buffer = Union[bytes, bytearray, memoryview]

_SKIP_BLOCK = 64 * 1024


class ForwardCursor:
    """Sequential byte cursor over a buffer or a readable stream.

    Usage:
        cursor = ForwardCursor(chunk_bytes, position=offset)
        cursor.skip_to(offset)          # no-op, already there
        data = cursor.read(len(chunk_bytes))
    """

    def __init__(self, source: Buffer | BinaryIO, position: int = 0) -> None:
        if position < 0:
            raise ValueError(f"Cursor position must be non-negative, got {position}")
        if isinstance(source, (bytes, bytearray, memoryview)):
            # Read-only view: the caller's buffer is never modified or copied whole
            self._view: memoryview | None = memoryview(source).cast("B")
            self._stream: BinaryIO | None = None
        else:
            self._view = None
            self._stream = source
        self._start = position
        self._position = position

    @property
    def position(self) -> int:
        """Absolute position of the next byte to be read."""
        return self._position

    def read(self, n: int) -> bytes:
        """Read up to n bytes. Returns fewer only at end of input."""
        if n < 0:
            raise ValueError("read size must be non-negative")
        if n == 0:
            return b""
        if self._view is not None:
            rel = self._position - self._start
            data = bytes(self._view[rel:rel + n])
        else:
            parts: list[bytes] = []
            remaining = n
            while remaining:
                block = self._stream.read(remaining)
                if not block:
                    break
                parts.append(block)
                remaining -= len(block)
            data = b"".join(parts)
        self._position += len(data)
        return data

    def skip_to(self, target: int) -> None:
        """Advance to an absolute position by reading forward.

        Raises:
            ValueError: If target is behind the current position.
            EOFError: If input ends before target.
        """
        if target < self._position:
            raise ValueError(
                f"Forward-only cursor at {self._position} cannot move back to {target}"
            )
        if self._view is not None:
            if target - self._start > len(self._view):
                raise EOFError(f"Input ends before position {target}")
            self._position = target
            return
        while self._position < target:
            block = self.read(min(_SKIP_BLOCK, target - self._position))
            if not block:
                raise EOFError(f"Input ends before position {target}")


class OutboardReader:
    """Parses an outboard (or the tree part of a slice) front to back."""

    def __init__(self, source: ForwardCursor | Buffer | BinaryIO) -> None:
        self._cursor = source if isinstance(source, ForwardCursor) else ForwardCursor(source)
        self._content_length: int | None = None

    @property
    def cursor(self) -> ForwardCursor:
        return self._cursor

    @property
    def content_length(self) -> int:
        if self._content_length is None:
            raise RuntimeError("Length header has not been read yet")
        return self._content_length

    def read_length(self) -> int:
        """Read the 8-byte length header. Must be the first read."""
        header = self._cursor.read(LENGTH_HEADER_SIZE)
        if len(header) != LENGTH_HEADER_SIZE:
            raise MalformedOutboard(
                f"Outboard too short for length header: {len(header)} of {LENGTH_HEADER_SIZE} bytes"
            )
        self._content_length = decode_length(header)
        return self._content_length

    def read_parent(self) -> tuple[bytes, bytes]:
        """Read the next parent record as (left_cv, right_cv)."""
        at = self._cursor.position
        record = self._cursor.read(PARENT_SIZE)
        if len(record) != PARENT_SIZE:
            raise MalformedOutboard(
                f"Truncated parent record at byte {at}: {len(record)} of {PARENT_SIZE} bytes"
            )
        return record[:HASH_SIZE], record[HASH_SIZE:]

    def skip_subtree(self, subtree_len: int, chunk_size: int) -> None:
        """Skip the parent records of a subtree that is not on the path."""
        count = parent_count(subtree_len, chunk_size)
        if count == 0:
            return
        try:
            self._cursor.skip_to(self._cursor.position + count * PARENT_SIZE)
        except EOFError:
            raise MalformedOutboard(
                f"Outboard ends inside a skipped subtree of {count} parent records"
            ) from None
