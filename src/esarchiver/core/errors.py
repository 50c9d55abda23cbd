# errors.py
# SPDX-License-Identifier: MIT
"""Exception hierarchy raised by archive load, unload and save runs.

Every error carries optional ``archive``, ``file`` and ``index`` context.
Lower layers fill in what they know (the reader knows the file, the stages
know the index) and the pipeline attaches the archive name before the error
reaches the caller.
"""

from __future__ import annotations

__all__ = [
    "ArchiverError",
    "ArchiveNotFoundError",
    "MalformedArchiveError",
    "IndexCreationError",
    "IndexDeletionError",
    "BulkIndexError",
    "RefreshError",
    "MigrationError",
]


class ArchiverError(RuntimeError):
    """Base class for all archiver failures."""

    def __init__(
        self,
        message: str,
        *,
        archive: str | None = None,
        file: str | None = None,
        index: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.archive = archive
        self.file = file
        self.index = index

    def with_context(
        self,
        *,
        archive: str | None = None,
        file: str | None = None,
        index: str | None = None,
    ) -> ArchiverError:
        """Fill in missing context fields and return self for re-raising."""
        if self.archive is None:
            self.archive = archive
        if self.file is None:
            self.file = file
        if self.index is None:
            self.index = index
        return self

    def __str__(self) -> str:
        parts = []
        if self.archive:
            parts.append(f"archive={self.archive!r}")
        if self.file:
            parts.append(f"file={self.file!r}")
        if self.index:
            parts.append(f"index={self.index!r}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class ArchiveNotFoundError(ArchiverError):
    """Raised when the archive directory or one of its files is missing."""


class MalformedArchiveError(ArchiverError):
    """Raised when an archive file cannot be decompressed, framed or parsed."""


class IndexCreationError(ArchiverError):
    """Raised when the engine rejects an exists/create/delete call during a load."""


class IndexDeletionError(ArchiverError):
    """Raised when the engine rejects a delete call during an unload."""


class BulkIndexError(ArchiverError):
    """Raised when a whole bulk batch is rejected by the engine."""

    def __init__(self, message: str, *, batch_size: int = 0, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.batch_size = batch_size


class RefreshError(ArchiverError):
    """Raised when the post-load refresh fails; indexed documents remain."""


class MigrationError(ArchiverError):
    """Raised when the post-load migration trigger fails."""
