"""
Error taxonomy for tree construction and chunk verification.

    ChunksealError
      SourceReadError          content source failed while building a tree
      VerificationError        a chunk or slice was rejected
        MalformedOutboard      outboard/slice truncated or inconsistent with its length
        VerificationMismatch   recomputed root differs from the trusted root
        MisalignedOffset       offset is not on a chunk boundary
        OffsetOutOfRange       offset is past the content the outboard describes
        ChunkLengthMismatch    chunk length wrong for its position

MalformedOutboard means the metadata itself is broken (abort the transfer);
VerificationMismatch and ChunkLengthMismatch mean only the chunk is bad
(re-fetch it). Nothing here is retried internally.
"""

from __future__ import annotations

from enum import Enum


class Outcome(str, Enum):
    """Result of verifying one chunk."""

    ACCEPTED = "accepted"
    VERIFICATION_MISMATCH = "verification_mismatch"
    MALFORMED_OUTBOARD = "malformed_outboard"
    MISALIGNED_OFFSET = "misaligned_offset"
    OFFSET_OUT_OF_RANGE = "offset_out_of_range"
    CHUNK_LENGTH_MISMATCH = "chunk_length_mismatch"


class ChunksealError(Exception):
    """Base class for chunkseal errors."""


class SourceReadError(ChunksealError):
    """The content source could not be read to the end."""


class VerificationError(ChunksealError):
    """A chunk or slice failed verification."""

    outcome: Outcome = Outcome.VERIFICATION_MISMATCH


class MalformedOutboard(VerificationError):
    """Outboard or slice bytes are truncated, mis-sized, or inconsistent."""

    outcome = Outcome.MALFORMED_OUTBOARD


class VerificationMismatch(VerificationError):
    """Recomputed hash does not match the trusted one."""

    outcome = Outcome.VERIFICATION_MISMATCH


class MisalignedOffset(VerificationError):
    """Offset does not fall on a chunk boundary."""

    outcome = Outcome.MISALIGNED_OFFSET


class OffsetOutOfRange(VerificationError):
    """Offset lies outside the content described by the outboard."""

    outcome = Outcome.OFFSET_OUT_OF_RANGE


class ChunkLengthMismatch(VerificationError):
    """Chunk length is inconsistent with the chunk expected at its offset."""

    outcome = Outcome.CHUNK_LENGTH_MISMATCH
