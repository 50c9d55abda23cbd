# archive.py
# SPDX-License-Identifier: MIT

"""Archive directory listing, file prioritization and record decoding."""

from __future__ import annotations

import gzip
import json
import zlib
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from ..core.errors import ArchiveNotFoundError, MalformedArchiveError
from ..core.log import get_logger
from ..core.records import ArchiveRecord, record_from_dict
from ..core.streams import Provider, concat_providers

log = get_logger(__name__)

__all__ = [
    "GZIP_MAGIC",
    "ArchiveReadPolicy",
    "ArchiveSource",
    "is_gzip",
    "read_directory",
    "prioritize_mappings",
    "iter_archive_records",
]

GZIP_MAGIC = b"\x1f\x8b"
_DEFAULT_MAX_FRAME_CHARS = 64 * 1024 * 1024
_DECODER = json.JSONDecoder()


@dataclass
class ArchiveReadPolicy:
    """Limits and decoding controls for archive files."""

    max_frame_chars: int | None = _DEFAULT_MAX_FRAME_CHARS
    decode_errors: str = "strict"


def is_gzip(path: str | Path) -> bool:
    """Return True if ``path`` holds gzip data.

    The file signature wins over the extension; the ``.gz`` suffix is only
    consulted when the file cannot be probed.
    """
    p = Path(path)
    try:
        with open(p, "rb") as fp:
            return fp.read(len(GZIP_MAGIC)) == GZIP_MAGIC
    except OSError:
        return p.suffix.lower() == ".gz"


def read_directory(path: str | Path) -> list[str]:
    """List the archive files of a directory.

    Hidden entries and subdirectories are ignored; names are sorted so the
    listing is stable across filesystems.

    Raises:
        ArchiveNotFoundError: If ``path`` is not a directory.
    """
    root = Path(path)
    if not root.is_dir():
        raise ArchiveNotFoundError(f"Archive directory not found: {root}")
    return sorted(
        entry.name
        for entry in root.iterdir()
        if not entry.name.startswith(".") and entry.is_file()
    )


def prioritize_mappings(filenames: Sequence[str]) -> list[str]:
    """Move files holding index records ahead of document-only files.

    A file is classified by name: anything containing ``mappings`` carries
    index records. The sort is stable, so listing order is kept within each
    class.
    """
    return sorted(filenames, key=lambda name: 0 if "mappings" in name else 1)


def _open_archive(path: Path, *, errors: str) -> TextIO:
    if is_gzip(path):
        return gzip.open(path, "rt", encoding="utf-8", errors=errors)
    return open(path, encoding="utf-8", errors=errors)


def _parse_values(text: str) -> list[Any]:
    """Parse one or more concatenated JSON values.

    Raises:
        json.JSONDecodeError: If ``text`` is not a complete run of values.
    """
    values = []
    pos = 0
    end = len(text)
    while True:
        while pos < end and text[pos].isspace():
            pos += 1
        if pos >= end:
            return values
        obj, pos = _DECODER.raw_decode(text, pos)
        values.append(obj)


def _decode_frame(text: str, *, path: Path, line: int) -> list[Any]:
    try:
        return _parse_values(text)
    except json.JSONDecodeError as exc:
        raise MalformedArchiveError(
            f"Invalid JSON in record starting at line {line}: {exc.msg} "
            f"(line {line + exc.lineno - 1}, column {exc.colno})",
            file=path.name,
        ) from exc


def _may_close_value(line: str, buffered: int) -> bool:
    # Compact records fit on one line; indented ones close at column 0.
    return line.rstrip().endswith("}") and (buffered == 1 or not line[:1].isspace())


def _iter_values(
    fp: TextIO,
    *,
    path: Path,
    max_frame_chars: int | None,
) -> Iterator[tuple[int, Any]]:
    """Yield ``(first_line, value)`` for each JSON value of an archive file.

    A frame ends at a blank line or at a line that completes the buffered
    JSON, so newline-delimited files are read one record at a time and the
    size limit applies per record.
    """

    buf: list[str] = []
    size = 0
    start = 0
    for lineno, line in enumerate(fp, start=1):
        if not line.strip():
            if buf:
                for value in _decode_frame("".join(buf), path=path, line=start):
                    yield start, value
                buf = []
                size = 0
            continue
        if not buf:
            start = lineno
        buf.append(line)
        size += len(line)
        if max_frame_chars is not None and size > max_frame_chars:
            raise MalformedArchiveError(
                f"Record starting at line {start} exceeds max_frame_chars={max_frame_chars}",
                file=path.name,
            )
        if _may_close_value(line, len(buf)):
            try:
                values = _parse_values("".join(buf))
            except json.JSONDecodeError:
                continue
            for value in values:
                yield start, value
            buf = []
            size = 0
    if buf:
        for value in _decode_frame("".join(buf), path=path, line=start):
            yield start, value


def iter_archive_records(
    path: str | Path,
    *,
    policy: ArchiveReadPolicy | None = None,
) -> Iterator[ArchiveRecord]:
    """Lazily decode the records of one archive file.

    The file is opened on the first ``next()`` call and closed when the
    generator is exhausted or closed.

    Raises:
        ArchiveNotFoundError: If the file disappeared.
        MalformedArchiveError: If the file cannot be decompressed, decoded
            or parsed.
    """
    p = Path(path)
    policy = policy or ArchiveReadPolicy()
    emitted = 0
    try:
        with _open_archive(p, errors=policy.decode_errors) as fp:
            for line, obj in _iter_values(fp, path=p, max_frame_chars=policy.max_frame_chars):
                try:
                    record = record_from_dict(obj, where=f"line {line}")
                except MalformedArchiveError as exc:
                    raise exc.with_context(file=p.name)
                emitted += 1
                yield record
    except FileNotFoundError as exc:
        raise ArchiveNotFoundError(f"Archive file not found: {p}", file=p.name) from exc
    except (OSError, EOFError, zlib.error, UnicodeDecodeError) as exc:
        raise MalformedArchiveError(
            f"Failed to read archive file after {emitted} records: {exc}",
            file=p.name,
        ) from exc
    log.debug("Finished %s: records=%d", p, emitted)


@dataclass
class ArchiveSource:
    """The files of one named archive under a data directory.

    Attributes:
        data_dir (Path): Directory holding one subdirectory per archive.
        name (str): Archive name (subdirectory of ``data_dir``).
        read_policy (ArchiveReadPolicy): Frame limits and decoding mode.
    """

    data_dir: Path
    name: str
    read_policy: ArchiveReadPolicy = field(default_factory=ArchiveReadPolicy)

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)

    @property
    def root(self) -> Path:
        return self.data_dir / self.name

    def files(self) -> list[str]:
        """Return the archive's file names, index-record files first."""
        return prioritize_mappings(read_directory(self.root))

    def provider(self, filename: str, *, logger=None) -> Provider[ArchiveRecord]:
        """Return a factory that opens ``filename`` only when called."""
        path = self.root / filename
        lg = logger or log

        def _open() -> Iterator[ArchiveRecord]:
            lg.info("[%s] Loading %r", self.name, filename)
            return iter_archive_records(path, policy=self.read_policy)

        return _open

    def iter_records(
        self,
        files: Sequence[str] | None = None,
        *,
        logger=None,
    ) -> Iterator[ArchiveRecord]:
        """Return every record of the archive as one ordered stream."""
        names = self.files() if files is None else files
        return concat_providers([self.provider(name, logger=logger) for name in names])
