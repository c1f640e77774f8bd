"""
Internal outboard format engine.

Outboards carry the tree of a content blob without the content itself:
an 8-byte length header followed by pre-order parent records. Slices reuse
the same framing with the covered chunk bytes interleaved. This is an
internal dependency — the public entry points are chunkseal.encoder,
chunkseal.verify and chunkseal.slices.
"""

from chunkseal._format.spec import (
    HEADER_STRUCT,
    chunk_count,
    left_len,
    outboard_size,
    validate_chunk_size,
)
from chunkseal._format.writer import OutboardWriter
from chunkseal._format.reader import ForwardCursor, OutboardReader
