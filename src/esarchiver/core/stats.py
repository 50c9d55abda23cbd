# stats.py
# SPDX-License-Identifier: MIT
"""Per-index ledger written by the pipeline stages and its frozen snapshot."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .log import get_logger

__all__ = ["DocCounts", "IndexStats", "IndexResult", "LoadResult", "LoadStats"]


# Convention: hot-path dataclasses use slots=True to reduce per-instance overhead.
@dataclass(slots=True)
class DocCounts:
    """Document counters for one index."""

    indexed: int = 0
    archived: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"indexed": int(self.indexed), "archived": int(self.archived), "failed": int(self.failed)}


@dataclass(slots=True)
class IndexStats:
    """Mutable status flags and counters for one index."""

    created: bool = False
    skipped: bool = False
    deleted: bool = False
    archived: bool = False
    docs: DocCounts = field(default_factory=DocCounts)


@dataclass(frozen=True, slots=True)
class IndexResult:
    """Immutable per-index entry of a :class:`LoadResult`."""

    created: bool = False
    skipped: bool = False
    deleted: bool = False
    archived: bool = False
    docs_indexed: int = 0
    docs_archived: int = 0
    docs_failed: int = 0

    @classmethod
    def from_stats(cls, stats: IndexStats) -> IndexResult:
        return cls(
            created=stats.created,
            skipped=stats.skipped,
            deleted=stats.deleted,
            archived=stats.archived,
            docs_indexed=stats.docs.indexed,
            docs_archived=stats.docs.archived,
            docs_failed=stats.docs.failed,
        )

    @property
    def docs(self) -> Mapping[str, int]:
        return MappingProxyType(
            {"indexed": self.docs_indexed, "archived": self.docs_archived, "failed": self.docs_failed}
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "skipped": self.skipped,
            "deleted": self.deleted,
            "archived": self.archived,
            "docs": dict(self.docs),
        }


class LoadResult(Mapping[str, IndexResult]):
    """Read-only mapping of index name to :class:`IndexResult`.

    Iteration order is the order in which indices were first touched.
    """

    __slots__ = ("name", "_indices")

    def __init__(self, name: str, indices: Mapping[str, IndexResult]) -> None:
        self.name = name
        self._indices: Mapping[str, IndexResult] = MappingProxyType(dict(indices))

    def __getitem__(self, index: str) -> IndexResult:
        return self._indices[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self._indices)

    def __len__(self) -> int:
        return len(self._indices)

    def __repr__(self) -> str:
        return f"LoadResult(name={self.name!r}, indices={list(self._indices)!r})"

    def refreshable(self) -> list[str]:
        """Return the affected indices whose ``deleted`` flag is not set."""
        return [index for index, entry in self._indices.items() if not entry.deleted]

    def docs_indexed(self) -> int:
        return sum(entry.docs_indexed for entry in self._indices.values())

    def as_dict(self) -> dict[str, dict[str, Any]]:
        """Return a JSON-friendly ``{index: {...}}`` dict."""
        return {index: entry.as_dict() for index, entry in self._indices.items()}


class LoadStats:
    """Mutable ledger keyed by index name, owned by a single run.

    Status transitions are logged with the archive name as prefix so a
    multi-archive run can be followed in the log.
    """

    def __init__(self, name: str, log: logging.Logger | None = None) -> None:
        self.name = name
        self.log = log or get_logger(__name__)
        self._indices: dict[str, IndexStats] = {}

    def _entry(self, index: str) -> IndexStats:
        entry = self._indices.get(index)
        if entry is None:
            entry = IndexStats()
            self._indices[index] = entry
        return entry

    def get(self, index: str) -> IndexStats | None:
        return self._indices.get(index)

    def skipped_index(self, index: str) -> None:
        self._entry(index).skipped = True
        self.log.info("[%s] Skipped restore for existing index %r", self.name, index)

    def deleted_index(self, index: str) -> None:
        self._entry(index).deleted = True
        self.log.info("[%s] Deleted existing index %r", self.name, index)

    def created_index(self, index: str, *, settings: Mapping[str, Any] | None = None) -> None:
        self._entry(index).created = True
        self.log.info("[%s] Created index %r", self.name, index)
        if settings:
            self.log.debug("[%s] %r settings %r", self.name, index, dict(settings))

    def archived_index(self, index: str) -> None:
        self._entry(index).archived = True
        self.log.info("[%s] Archived %r", self.name, index)

    def archived_doc(self, index: str, count: int = 1) -> None:
        self._entry(index).docs.archived += count

    def indexed_doc(self, index: str, count: int = 1) -> None:
        self._entry(index).docs.indexed += count

    def failed_doc(self, index: str, count: int = 1) -> None:
        self._entry(index).docs.failed += count

    def indices(self) -> list[str]:
        return list(self._indices)

    def snapshot(self) -> LoadResult:
        """Freeze the current ledger into a :class:`LoadResult`."""
        return LoadResult(
            self.name,
            {index: IndexResult.from_stats(entry) for index, entry in self._indices.items()},
        )
