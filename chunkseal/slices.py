"""
Slices — self-contained proofs for a window of content.

A slice is cut from (outboard, content) for an (offset, length) window and
holds, in pre-order, the parent records of every subtree overlapping the
window with the raw bytes of every overlapping chunk in between. Together
with the root fingerprint it verifies the window without any other data.

Window rules:
    - A zero length still covers the chunk containing offset.
    - An offset at or past the end covers the final chunk, so a slice always
      proves the content length even when it returns no bytes.

Both sides read strictly forward. extract_slice() reads the content through
a ForwardCursor that may skip ahead but never goes back; SliceDecoder checks
every parent record against the hash expected for it before trusting its
children, and only returns bytes whose chunk has been verified.
"""

from __future__ import annotations

import hmac
import logging
from typing import BinaryIO

from chunkseal import HASH_SIZE
from chunkseal._format.reader import Buffer, ForwardCursor, OutboardReader
from chunkseal._format.spec import chunk_count, encode_length, left_len, validate_chunk_size
from chunkseal.errors import MalformedOutboard, SourceReadError, VerificationMismatch
from chunkseal.hashing import hash_chunk, hash_parent

log = logging.getLogger(__name__)


def _chunk_window(offset: int, length: int, content_length: int, chunk_size: int) -> tuple[int, int]:
    """First and last (inclusive) chunk indexes a window touches."""
    if offset < 0 or length < 0:
        raise ValueError(f"Invalid slice window: offset={offset}, length={length}")
    final = chunk_count(content_length, chunk_size) - 1
    first = min(offset // chunk_size, final)
    last = min((offset + max(length, 1) - 1) // chunk_size, final)
    return first, last


def _overlaps(start: int, subtree_len: int, window: tuple[int, int], chunk_size: int) -> bool:
    lo = start // chunk_size
    hi = lo + chunk_count(subtree_len, chunk_size)
    return lo <= window[1] and window[0] < hi


def extract_slice(
    outboard: Buffer | BinaryIO,
    content: Buffer | BinaryIO | ForwardCursor,
    offset: int,
    length: int,
    *,
    chunk_size: int,
    content_offset: int = 0,
) -> bytes:
    """Cut a slice for [offset, offset + length) out of an outboard and content.

    Args:
        outboard: Complete outboard, as bytes or a readable stream.
        content: Content bytes or stream. Its first byte sits at
            content_offset in the original content; it only needs to reach
            the end of the last chunk the window touches.
        offset: Window start in the original content.
        length: Window length in bytes.
        chunk_size: Protocol chunk size.
        content_offset: Position of the first byte of content.

    Returns:
        Slice bytes (length header, parent records, chunk bytes).

    Raises:
        MalformedOutboard: If the outboard ends early.
        SourceReadError: If the content ends early or cannot be read.
        ValueError: If content starts after a chunk the window needs.
    """
    validate_chunk_size(chunk_size)
    reader = OutboardReader(outboard)
    content_length = reader.read_length()
    window = _chunk_window(offset, length, content_length, chunk_size)
    source = content if isinstance(content, ForwardCursor) else ForwardCursor(content, position=content_offset)
    out = bytearray(encode_length(content_length))

    def read_chunk(start: int, size: int) -> bytes:
        try:
            source.skip_to(start)
            data = source.read(size)
        except EOFError as e:
            raise SourceReadError(f"Content ends before chunk at {start}: {e}") from e
        except OSError as e:
            raise SourceReadError(f"Content read failed at {start}: {e}") from e
        if len(data) != size:
            raise SourceReadError(
                f"Content ends inside chunk at {start}: {len(data)} of {size} bytes"
            )
        return data

    def walk(start: int, subtree_len: int) -> None:
        if subtree_len <= chunk_size:
            out.extend(read_chunk(start, subtree_len))
            return
        left_cv, right_cv = reader.read_parent()
        out.extend(left_cv)
        out.extend(right_cv)
        split = left_len(subtree_len, chunk_size)
        if _overlaps(start, split, window, chunk_size):
            walk(start, split)
        else:
            reader.skip_subtree(split, chunk_size)
        if _overlaps(start + split, subtree_len - split, window, chunk_size):
            walk(start + split, subtree_len - split)

    walk(0, content_length)
    log.debug(
        "Extracted slice offset=%d length=%d (chunks %d..%d): %d bytes",
        offset, length, window[0], window[1], len(out),
    )
    return bytes(out)


class SliceDecoder:
    """Verifies a slice against a trusted root and yields the window bytes.

    Usage:
        decoder = SliceDecoder(slice_bytes, root, offset, length, chunk_size=262144)
        data = decoder.decode()   # raises VerificationError on rejection
    """

    def __init__(
        self,
        slice_source: Buffer | BinaryIO,
        root_hash: bytes,
        offset: int,
        length: int,
        *,
        chunk_size: int,
    ) -> None:
        validate_chunk_size(chunk_size)
        if len(root_hash) != HASH_SIZE:
            raise ValueError(f"Root hash must be {HASH_SIZE} bytes, got {len(root_hash)}")
        if offset < 0 or length < 0:
            raise ValueError(f"Invalid slice window: offset={offset}, length={length}")
        self._reader = OutboardReader(slice_source)
        self._root = bytes(root_hash)
        self._offset = offset
        self._length = length
        self._chunk_size = chunk_size
        self._window: tuple[int, int] = (0, 0)
        self._out = bytearray()
        self._output: bytes | None = None

    def decode(self) -> bytes:
        """Verify the whole slice and return the bytes inside the window.

        Raises:
            VerificationMismatch: If any node or chunk fails its hash check.
            MalformedOutboard: If the slice is truncated or has trailing bytes.
        """
        if self._output is not None:
            return self._output

        content_length = self._reader.read_length()
        self._window = _chunk_window(self._offset, self._length, content_length, self._chunk_size)
        self._walk(0, content_length, self._root, root_length=content_length)

        if self._reader.cursor.read(1):
            raise MalformedOutboard(
                f"Trailing bytes after slice at byte {self._reader.cursor.position - 1}"
            )

        self._output = bytes(self._out)
        log.debug(
            "Decoded slice offset=%d length=%d: %d verified bytes",
            self._offset, self._length, len(self._output),
        )
        return self._output

    def _walk(self, start: int, subtree_len: int, expected: bytes, root_length: int | None) -> None:
        chunk_size = self._chunk_size
        if subtree_len <= chunk_size:
            self._read_chunk(start, subtree_len, expected, is_root=root_length is not None)
            return

        left_cv, right_cv = self._reader.read_parent()
        computed = hash_parent(left_cv, right_cv, root_length=root_length)
        if not hmac.compare_digest(computed, expected):
            raise VerificationMismatch(
                f"Parent record for bytes {start}..{start + subtree_len} does not match"
            )

        split = left_len(subtree_len, chunk_size)
        if _overlaps(start, split, self._window, chunk_size):
            self._walk(start, split, left_cv, None)
        if _overlaps(start + split, subtree_len - split, self._window, chunk_size):
            self._walk(start + split, subtree_len - split, right_cv, None)

    def _read_chunk(self, start: int, size: int, expected: bytes, is_root: bool) -> None:
        data = self._reader.cursor.read(size)
        if len(data) != size:
            raise MalformedOutboard(
                f"Slice ends inside chunk at {start}: {len(data)} of {size} bytes"
            )
        index = start // self._chunk_size
        computed = hash_chunk(data, 0, is_root=True) if is_root else hash_chunk(data, index)
        if not hmac.compare_digest(computed, expected):
            raise VerificationMismatch(f"Chunk {index} does not match")

        lo = max(self._offset, start)
        hi = min(self._offset + self._length, start + size)
        if lo < hi:
            self._out.extend(data[lo - start:hi - start])


def decode_slice(
    slice_bytes: Buffer | BinaryIO,
    root_hash: bytes,
    offset: int,
    length: int,
    *,
    chunk_size: int,
) -> bytes:
    """Verify a slice and return the window bytes. See SliceDecoder."""
    return SliceDecoder(slice_bytes, root_hash, offset, length, chunk_size=chunk_size).decode()
