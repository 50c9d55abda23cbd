# stages.py
# SPDX-License-Identifier: MIT
"""Pipeline stages that replay archive records into the destination engine.

Each stage is a callable that takes a stream of :data:`Result` items and
returns a generator of results. A stage forwards an upstream ``Err``
untouched and stops; its own failures are emitted as a final ``Err``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence

from .errors import BulkIndexError, IndexCreationError, IndexDeletionError
from .interfaces import SearchEngine
from .log import get_logger
from .records import DocRecord, IndexRecord, is_internal_index
from .stats import LoadStats
from .streams import Err, Ok, Result, closing_stream

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_INTERNAL_PREFIX",
    "CreateIndexStage",
    "IndexDocsStage",
    "DeleteIndexStage",
]

DEFAULT_BATCH_SIZE = 300
DEFAULT_INTERNAL_PREFIX = ".kibana"


class CreateIndexStage:
    """Create, skip or replace each target index on its first index record.

    Decisions per index name, first record wins:

    * absent: create it.
    * present and ``skip_existing``: leave it alone and drop its documents.
    * present otherwise: delete it (aliases resolved to concrete indices)
      and create it again.

    The first internal index that is going to be (re)created wipes every
    existing index of the internal family so the post-load migration starts
    from a clean slate. With ``skip_existing`` there is no family wipe: an
    existing internal index is skipped like any other. Later index records
    for an already handled index are ignored.
    """

    def __init__(
        self,
        *,
        engine: SearchEngine,
        stats: LoadStats,
        skip_existing: bool = False,
        internal_prefix: str = DEFAULT_INTERNAL_PREFIX,
        log: logging.Logger | None = None,
    ) -> None:
        self.engine = engine
        self.stats = stats
        self.skip_existing = skip_existing
        self.internal_prefix = internal_prefix
        self.log = log or get_logger(__name__)
        self._seen: set[str] = set()
        self._skipped: set[str] = set()
        self._internal_cleared = False

    def __call__(self, results: Iterable[Result[object]]) -> Iterator[Result[object]]:
        with closing_stream(results) as upstream:
            for item in upstream:
                if isinstance(item, Err):
                    yield item
                    return
                record = item.value
                if isinstance(record, IndexRecord):
                    try:
                        self.handle_index(record)
                    except IndexCreationError as exc:
                        yield Err(exc)
                        return
                elif isinstance(record, DocRecord):
                    self.stats.archived_doc(record.index)
                    if record.index in self._skipped:
                        continue
                yield item

    def handle_index(self, record: IndexRecord) -> None:
        """Apply the create/skip/replace decision for one index record.

        Raises:
            IndexCreationError: If any engine call fails.
        """
        index = record.index
        if index in self._seen:
            self.log.debug("[%s] Ignoring repeated index record for %r", self.stats.name, index)
            return
        self._seen.add(index)

        try:
            exists = self.engine.index_exists(index)
            if exists and self.skip_existing:
                self._skipped.add(index)
                self.stats.skipped_index(index)
                return
            if (
                not self.skip_existing
                and not self._internal_cleared
                and is_internal_index(index, self.internal_prefix)
            ):
                self._internal_cleared = True
                self._delete(self.engine.resolve_indices(f"{self.internal_prefix}*"))
            elif exists:
                self._delete(self.engine.resolve_indices(index))
            self.engine.create_index(
                index,
                settings=record.settings,
                mappings=record.mappings,
                aliases=record.aliases,
            )
        except Exception as exc:
            raise IndexCreationError(f"Failed to prepare index: {exc}", index=index) from exc
        self.stats.created_index(index, settings=record.settings)

    def _delete(self, indices: Sequence[str]) -> None:
        indices = [name for name in indices if name not in self._skipped]
        if not indices:
            return
        self.engine.delete_index(indices)
        for name in indices:
            self.stats.deleted_index(name)


class IndexDocsStage:
    """Write document records to the engine in bulk batches.

    Emits ``Ok(indexed_count)`` after every flushed batch. Rejected
    documents are counted per index and logged; a batch whose request fails
    or whose every document is rejected ends the stream with a
    :class:`BulkIndexError`.
    """

    def __init__(
        self,
        *,
        engine: SearchEngine,
        stats: LoadStats,
        batch_size: int = DEFAULT_BATCH_SIZE,
        log: logging.Logger | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.engine = engine
        self.stats = stats
        self.batch_size = int(batch_size)
        self.log = log or get_logger(__name__)
        self.batches = 0

    def __call__(self, results: Iterable[Result[object]]) -> Iterator[Result[int]]:
        batch: list[DocRecord] = []
        with closing_stream(results) as upstream:
            for item in upstream:
                if isinstance(item, Err):
                    # Pending documents are dropped with the failed run.
                    yield item
                    return
                record = item.value
                if not isinstance(record, DocRecord):
                    continue
                batch.append(record)
                if len(batch) >= self.batch_size:
                    outcome = self._flush(batch)
                    batch = []
                    yield outcome
                    if isinstance(outcome, Err):
                        return
            if batch:
                yield self._flush(batch)

    def _flush(self, batch: Sequence[DocRecord]) -> Result[int]:
        self.batches += 1
        targets = sorted({doc.index for doc in batch})
        index = targets[0] if len(targets) == 1 else None
        try:
            outcomes = self.engine.bulk_index(batch)
        except Exception as exc:
            err = BulkIndexError(
                f"Bulk request #{self.batches} with {len(batch)} documents failed: {exc}",
                batch_size=len(batch),
                index=index,
            )
            err.__cause__ = exc
            return Err(err)

        indexed = 0
        failures = []
        for outcome in outcomes:
            if outcome.ok:
                self.stats.indexed_doc(outcome.index)
                indexed += 1
            else:
                self.stats.failed_doc(outcome.index)
                failures.append(outcome)

        if failures and not indexed:
            return Err(
                BulkIndexError(
                    f"All {len(failures)} documents in bulk request #{self.batches} were rejected; "
                    f"first error: {failures[0].error}",
                    batch_size=len(batch),
                    index=index,
                )
            )
        if failures:
            self.log.warning(
                "[%s] %d of %d documents rejected in bulk request #%d; first error for %r: %s",
                self.stats.name,
                len(failures),
                len(batch),
                self.batches,
                failures[0].index,
                failures[0].error,
            )
        return Ok(indexed)


class DeleteIndexStage:
    """Delete every index named by an index record (used by unload).

    Emits ``Ok(index)`` for each handled index record. Internal indices are
    deleted as a family, once per run; :attr:`internal_touched` tells the
    caller whether a migration is due.
    """

    def __init__(
        self,
        *,
        engine: SearchEngine,
        stats: LoadStats,
        internal_prefix: str = DEFAULT_INTERNAL_PREFIX,
        log: logging.Logger | None = None,
    ) -> None:
        self.engine = engine
        self.stats = stats
        self.internal_prefix = internal_prefix
        self.log = log or get_logger(__name__)
        self.internal_touched = False

    def __call__(self, results: Iterable[Result[object]]) -> Iterator[Result[str]]:
        with closing_stream(results) as upstream:
            for item in upstream:
                if isinstance(item, Err):
                    yield item
                    return
                record = item.value
                if not isinstance(record, IndexRecord):
                    continue
                try:
                    self._delete_for(record.index)
                except IndexDeletionError as exc:
                    yield Err(exc)
                    return
                yield Ok(record.index)

    def _delete_for(self, index: str) -> None:
        internal = is_internal_index(index, self.internal_prefix)
        if internal:
            if self.internal_touched:
                return
            self.internal_touched = True
            pattern = f"{self.internal_prefix}*"
        else:
            pattern = index
        try:
            targets = self.engine.resolve_indices(pattern)
            if not targets:
                self.log.debug("[%s] Nothing to delete for %r", self.stats.name, index)
                return
            self.engine.delete_index(targets)
        except Exception as exc:
            raise IndexDeletionError(f"Failed to delete index: {exc}", index=index) from exc
        for name in targets:
            self.stats.deleted_index(name)
