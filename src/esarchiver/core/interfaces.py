# interfaces.py
# SPDX-License-Identifier: MIT
"""Protocols for the collaborators the archive pipelines talk to."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .records import DocRecord


# -----------------------------------------------------------------------------
# Shared data types
# -----------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class BulkItemResult:
    """Outcome of one document inside a bulk write.

    Attributes:
        index (str): Index the document was written to.
        id (str | None): Document id reported by the engine.
        ok (bool): Whether the engine accepted the document.
        status (int | None): Per-item HTTP-like status code.
        error (Any): Engine error payload for rejected documents.
    """

    index: str
    id: str | None
    ok: bool
    status: int | None = None
    error: Any = None


@dataclass(frozen=True, slots=True)
class IndexDefinition:
    """Settings, mappings and aliases of an existing index, as read for saving."""

    index: str
    settings: Mapping[str, Any] | None = None
    mappings: Mapping[str, Any] | None = None
    aliases: Mapping[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class StoredDocument:
    """A document read back from the engine."""

    index: str
    id: str | None
    source: Mapping[str, Any]
    routing: str | None = None


# -----------------------------------------------------------------------------
# Engine protocol
# -----------------------------------------------------------------------------


@runtime_checkable
class SearchEngine(Protocol):
    """Destination engine operations used by load, unload and save."""

    def index_exists(self, index: str) -> bool:
        """Return True if an index or alias named ``index`` exists."""
        ...

    def create_index(
        self,
        index: str,
        *,
        settings: Mapping[str, Any] | None = None,
        mappings: Mapping[str, Any] | None = None,
        aliases: Mapping[str, Any] | None = None,
    ) -> None:
        """Create ``index`` with the given definition."""
        ...

    def delete_index(self, indices: Sequence[str]) -> None:
        """Delete the given concrete indices."""
        ...

    def resolve_indices(self, pattern: str) -> list[str]:
        """Return the concrete index names behind a name, alias or wildcard."""
        ...

    def bulk_index(self, docs: Sequence[DocRecord]) -> list[BulkItemResult]:
        """Write ``docs`` in one bulk request and report per-document results."""
        ...

    def refresh(self, indices: Sequence[str]) -> None:
        """Make recent writes to ``indices`` visible to search."""
        ...

    def get_indices(self, pattern: str) -> list[IndexDefinition]:
        """Return the definitions of every index matching ``pattern``."""
        ...

    def scan_documents(self, index: str) -> Iterable[StoredDocument]:
        """Yield every document stored in ``index``."""
        ...


class Migrator(Protocol):
    """Post-load hook that migrates the internal metadata index family."""

    def migrate(self, indices: Sequence[str]) -> None:  # pragma: no cover - interface
        """Bring the internal ``indices`` to the expected schema version."""
