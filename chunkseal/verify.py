"""
Chunk verification against a trusted root fingerprint.

A consumer holds the root (obtained out of band), the outboard, and one
chunk fetched from an untrusted source. Verification:

    1. Check the outboard is exactly as long as its length header implies.
    2. Check the offset names a chunk that exists (aligned, in range) and
       that the chunk has the length expected at that position.
    3. Walk the outboard forward from the root towards the chunk, collecting
       the sibling hash at every level (ChunkProof).
    4. Recompute the leaf hash, fold the siblings upward and compare the
       result to the trusted root in constant time.

Sibling hashes always come from the outboard, never from the chunk. Every
call is independent and only reads its inputs, so calls for different chunks
of the same blob can run on any number of threads.
"""

from __future__ import annotations

import hmac
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable

from chunkseal import HASH_SIZE
from chunkseal._format.reader import Buffer, OutboardReader
from chunkseal._format.spec import left_len, outboard_size, validate_chunk_size
from chunkseal.errors import (
    ChunkLengthMismatch,
    MalformedOutboard,
    MisalignedOffset,
    OffsetOutOfRange,
    Outcome,
    VerificationError,
    VerificationMismatch,
)
from chunkseal.hashing import hash_chunk, hash_parent

log = logging.getLogger(__name__)

_LEFT = "left"
_RIGHT = "right"


@dataclass(frozen=True)
class ChunkProof:
    """Authentication path for one chunk, read from an outboard.

    Attributes:
        chunk_index: 0-based index of the chunk being proven.
        chunk_len: Length the chunk must have at that index.
        content_length: Total content length from the outboard header.
        siblings: (hash, direction) pairs from the leaf level up to the
            root's children. direction is 'left' if the sibling sits to the
            left of the path, 'right' otherwise.
    """

    chunk_index: int
    chunk_len: int
    content_length: int
    siblings: list[tuple[bytes, str]]

    def compute_root(self, chunk: bytes) -> bytes:
        """Fold the chunk hash up through the siblings to a root hash."""
        if not self.siblings:
            return hash_chunk(chunk, 0, is_root=True)

        current = hash_chunk(chunk, self.chunk_index)
        top = len(self.siblings) - 1
        for level, (sibling, direction) in enumerate(self.siblings):
            root_length = self.content_length if level == top else None
            if direction == _LEFT:
                current = hash_parent(sibling, current, root_length=root_length)
            else:
                current = hash_parent(current, sibling, root_length=root_length)
        return current


def build_chunk_proof(reader: OutboardReader, chunk_index: int, chunk_size: int) -> ChunkProof:
    """Read the authentication path for chunk_index from an outboard.

    The reader must be positioned at the start of the outboard. Subtrees
    off the path are skipped by reading forward.

    Raises:
        MalformedOutboard: If the outboard ends early.
        OffsetOutOfRange: If the chunk does not exist.
    """
    content_length = reader.read_length()
    chunk_start = chunk_index * chunk_size
    # Empty content still has chunk 0 (zero bytes long)
    if chunk_index < 0 or not (chunk_start < content_length or chunk_start == 0):
        raise OffsetOutOfRange(
            f"Chunk {chunk_index} is outside content of {content_length} bytes"
        )

    path: list[tuple[bytes, str]] = []
    start = 0
    length = content_length
    while length > chunk_size:
        left_cv, right_cv = reader.read_parent()
        split = left_len(length, chunk_size)
        if chunk_start < start + split:
            path.append((right_cv, _RIGHT))
            length = split
        else:
            path.append((left_cv, _LEFT))
            reader.skip_subtree(split, chunk_size)
            start += split
            length -= split

    path.reverse()
    return ChunkProof(
        chunk_index=chunk_index,
        chunk_len=length,
        content_length=content_length,
        siblings=path,
    )


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of one verify_chunk call. Truthy only when accepted."""

    outcome: Outcome
    detail: str = ""
    chunk_index: int | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome is Outcome.ACCEPTED

    @property
    def refetch_chunk(self) -> bool:
        """True when only the chunk is bad and fetching it again may help."""
        return self.outcome in (Outcome.VERIFICATION_MISMATCH, Outcome.CHUNK_LENGTH_MISMATCH)

    def __bool__(self) -> bool:
        return self.accepted


def _check_root(root_hash: bytes) -> None:
    if len(root_hash) != HASH_SIZE:
        raise ValueError(f"Root hash must be {HASH_SIZE} bytes, got {len(root_hash)}")


def check_chunk(
    chunk_bytes: Buffer,
    offset: int,
    outboard: Buffer,
    root_hash: bytes,
    *,
    chunk_size: int,
) -> int:
    """Verify one chunk, raising on rejection.

    Args:
        chunk_bytes: The raw chunk as received.
        offset: Byte offset of the chunk within the original content.
        outboard: The complete outboard for the content.
        root_hash: Trusted 32-byte root fingerprint.
        chunk_size: Protocol chunk size; must match the producer's.

    Returns:
        The verified chunk index.

    Raises:
        MalformedOutboard, MisalignedOffset, OffsetOutOfRange,
        ChunkLengthMismatch, VerificationMismatch: on rejection.
        ValueError: For an invalid chunk size or root hash length.
    """
    validate_chunk_size(chunk_size)
    _check_root(root_hash)

    reader = OutboardReader(outboard)
    content_length = reader.read_length()
    expected_size = outboard_size(content_length, chunk_size)
    actual_size = len(memoryview(outboard).cast("B"))
    if actual_size != expected_size:
        raise MalformedOutboard(
            f"Outboard is {actual_size} bytes, content of {content_length} bytes needs {expected_size}"
        )

    if offset < 0 or offset % chunk_size:
        raise MisalignedOffset(f"Offset {offset} is not a multiple of chunk size {chunk_size}")

    # Fresh reader: the proof walk starts at the header again
    proof = build_chunk_proof(OutboardReader(outboard), offset // chunk_size, chunk_size)

    chunk = memoryview(chunk_bytes).cast("B")
    if len(chunk) != proof.chunk_len:
        raise ChunkLengthMismatch(
            f"Chunk {proof.chunk_index} must be {proof.chunk_len} bytes, got {len(chunk)}"
        )

    computed = proof.compute_root(chunk)
    if not hmac.compare_digest(computed, root_hash):
        raise VerificationMismatch(
            f"Chunk {proof.chunk_index} does not match the root fingerprint"
        )
    return proof.chunk_index


def verify_chunk(
    chunk_bytes: Buffer,
    offset: int,
    outboard: Buffer,
    root_hash: bytes,
    *,
    chunk_size: int,
) -> VerifyResult:
    """Verify one chunk and report the outcome instead of raising.

    Same arguments as check_chunk(). Rejections come back as a VerifyResult
    whose outcome says why; only invalid parameters (chunk size, root
    length) raise ValueError.
    """
    index = offset // chunk_size if chunk_size > 0 and offset >= 0 else None
    try:
        index = check_chunk(chunk_bytes, offset, outboard, root_hash, chunk_size=chunk_size)
    except VerificationError as e:
        log.info("Rejected chunk at offset %d: %s (%s)", offset, e.outcome.value, e)
        return VerifyResult(outcome=e.outcome, detail=str(e), chunk_index=index)

    log.debug("Accepted chunk %d at offset %d", index, offset)
    return VerifyResult(outcome=Outcome.ACCEPTED, chunk_index=index)


def verify_chunks(
    chunks: Iterable[tuple[int, Buffer]],
    outboard: Buffer,
    root_hash: bytes,
    *,
    chunk_size: int,
    max_workers: int | None = None,
) -> list[VerifyResult]:
    """Verify many (offset, chunk_bytes) pairs concurrently.

    Results are returned in input order. The outboard and root are shared
    read-only between workers.
    """
    validate_chunk_size(chunk_size)
    _check_root(root_hash)
    items = list(chunks)
    if not items:
        return []

    outboard = bytes(outboard)

    def _one(item: tuple[int, Buffer]) -> VerifyResult:
        offset, data = item
        return verify_chunk(data, offset, outboard, root_hash, chunk_size=chunk_size)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_one, items))
