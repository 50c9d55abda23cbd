# archive.py
# SPDX-License-Identifier: MIT
"""Writer for archive files in the blank-line separated record format."""
from __future__ import annotations

import gzip
import os
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from ..core.records import RECORD_SEPARATOR, ArchiveRecord, format_record

__all__ = ["ArchiveWriter"]


class ArchiveWriter:
    """Streaming archive writer, optionally gzip compressed.

    Output goes to ``<name>.tmp`` and is moved into place on a clean close,
    so a failed save never leaves a truncated archive behind. Writers that
    must land together call :meth:`finish` on each and :meth:`commit` once
    all of them succeeded.
    """

    def __init__(self, out_path: str | os.PathLike[str], *, gzip: bool = False) -> None:
        """Configure the destination.

        Args:
            out_path (str | os.PathLike[str]): Destination file path.
            gzip (bool): Whether to gzip-compress the output.
        """
        self._path = Path(out_path)
        self._gzip = gzip
        self._fp: TextIO | None = None
        self._tmp_path: Path | None = None
        self.records = 0

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        """Create the temp file for writing."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._tmp_path = self._path.parent / f"{self._path.name}.tmp"
        if self._gzip:
            self._fp = gzip.open(self._tmp_path, "wt", encoding="utf-8", newline="")
        else:
            self._fp = open(self._tmp_path, "w", encoding="utf-8", newline="")

    def write(self, record: ArchiveRecord) -> None:
        """Write a single record frame."""
        assert self._fp is not None
        if self.records:
            self._fp.write(RECORD_SEPARATOR)
        self._fp.write(format_record(record))
        self.records += 1

    def write_all(self, records: Iterable[ArchiveRecord]) -> int:
        for record in records:
            self.write(record)
        return self.records

    def finish(self) -> None:
        """Close the handle, leaving the finished temp file uncommitted."""
        if not self._fp:
            return
        try:
            if self.records:
                self._fp.write("\n")
            self._fp.close()
        finally:
            self._fp = None

    def commit(self) -> None:
        """Move the finished temp file over the destination."""
        self.finish()
        if self._tmp_path:
            os.replace(self._tmp_path, self._path)
            self._tmp_path = None

    def discard(self) -> None:
        """Drop the temp file; the destination is left untouched."""
        if self._fp:
            try:
                self._fp.close()
            finally:
                self._fp = None
        if self._tmp_path:
            self._tmp_path.unlink(missing_ok=True)
            self._tmp_path = None

    def close(self, *, commit: bool = True) -> None:
        """Close the handle and move the temp file into place (or discard it)."""
        if commit:
            self.commit()
        else:
            self.discard()

    def __enter__(self) -> ArchiveWriter:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(commit=exc_type is None)
