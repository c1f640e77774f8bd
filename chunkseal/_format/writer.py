"""
Writer — assembles outboard bytes and persists them.

The parent records arrive already in pre-order from the encoder; the writer
only frames them behind the length header and checks the record count
against the tree shape the header implies.
"""

from __future__ import annotations

import io
import os
import tempfile
from pathlib import Path
from typing import Iterable

from chunkseal import PARENT_SIZE
from chunkseal._format.spec import encode_length, parent_count


class OutboardWriter:

    @staticmethod
    def serialize(content_length: int, parents: Iterable[bytes], chunk_size: int) -> bytes:
        """Serialize header + parent records. Pure — does not mutate the input."""
        out = io.BytesIO()
        out.write(encode_length(content_length))
        written = 0
        for record in parents:
            if len(record) != PARENT_SIZE:
                raise ValueError(
                    f"Parent record must be {PARENT_SIZE} bytes, got {len(record)}"
                )
            out.write(record)
            written += 1

        expected = parent_count(content_length, chunk_size)
        if written != expected:
            raise ValueError(
                f"Content of {content_length} bytes needs {expected} parent records, got {written}"
            )
        return out.getvalue()

    @staticmethod
    def write(data: bytes, path: str | Path, mode: int = 0o644) -> int:
        """Write outboard bytes to a file atomically. Returns bytes written."""
        path = os.fspath(path)
        dir_name = os.path.dirname(os.path.abspath(path)) or "."
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".obao.tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return len(data)
