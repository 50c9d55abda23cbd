# pipeline.py
# SPDX-License-Identifier: MIT
"""Archive load pipeline: read, create indices, index documents, reconcile."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..sources.archive import ArchiveReadPolicy, ArchiveSource
from .errors import ArchiverError, MigrationError, RefreshError
from .interfaces import Migrator, SearchEngine
from .log import get_logger
from .records import is_internal_index
from .stages import DEFAULT_BATCH_SIZE, DEFAULT_INTERNAL_PREFIX, CreateIndexStage, IndexDocsStage
from .stats import LoadResult, LoadStats
from .streams import capture, connect, drain

log = get_logger(__name__)

__all__ = ["LoadRequest", "PostLoadReconciler", "ArchiveLoader"]


@dataclass
class LoadRequest:
    """Everything a single load invocation needs.

    Attributes:
        name (str): Archive name; a subdirectory of ``data_dir``.
        data_dir (Path): Directory holding the archives.
        engine (SearchEngine): Destination engine.
        skip_existing (bool): Leave indices that already exist untouched.
        log (logging.Logger | None): Logger for progress lines.
        migrator (Migrator | None): Called once when internal indices
            were affected; ``None`` disables the migration step.
        batch_size (int): Documents per bulk request.
        internal_prefix (str): Name prefix of the internal metadata
            index family.
        read_policy (ArchiveReadPolicy): Frame limits for the reader.
    """

    name: str
    data_dir: Path
    engine: SearchEngine
    skip_existing: bool = False
    log: logging.Logger | None = None
    migrator: Migrator | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    internal_prefix: str = DEFAULT_INTERNAL_PREFIX
    read_policy: ArchiveReadPolicy = field(default_factory=ArchiveReadPolicy)

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        if self.log is None:
            self.log = log


class PostLoadReconciler:
    """Refresh affected indices and trigger the internal-index migration."""

    def __init__(
        self,
        *,
        engine: SearchEngine,
        migrator: Migrator | None,
        internal_prefix: str = DEFAULT_INTERNAL_PREFIX,
        log: logging.Logger | None = None,
    ) -> None:
        self.engine = engine
        self.migrator = migrator
        self.internal_prefix = internal_prefix
        self.log = log or get_logger(__name__)

    def reconcile(self, result: LoadResult) -> None:
        """Refresh once, then migrate once if any internal index was affected.

        Raises:
            RefreshError: If the refresh call fails.
            MigrationError: If the migration trigger fails.
        """
        indices = result.refreshable()
        for index in indices:
            entry = result[index]
            self.log.info(
                "[%s] Indexed %d docs into %r", result.name, entry.docs_indexed, index
            )
        if indices:
            try:
                self.engine.refresh(indices)
            except Exception as exc:
                raise RefreshError(f"Failed to refresh {indices!r}: {exc}", archive=result.name) from exc

        internal = [index for index in result if is_internal_index(index, self.internal_prefix)]
        if not internal:
            return
        if self.migrator is None:
            self.log.warning(
                "[%s] Internal indices %r were loaded but no migration target is configured",
                result.name,
                internal,
            )
            return
        self.log.info("[%s] Migrating internal indices %r", result.name, internal)
        try:
            self.migrator.migrate(internal)
        except MigrationError as exc:
            raise exc.with_context(archive=result.name)
        except Exception as exc:
            raise MigrationError(f"Migration failed: {exc}", archive=result.name) from exc


class ArchiveLoader:
    """Execute a :class:`LoadRequest` and return its :class:`LoadResult`.

    Records flow one at a time from the prioritized archive files through
    the index creation and document indexing stages. Any failure closes the
    whole chain and is re-raised with the archive name attached; nothing is
    refreshed or migrated after a failed run.
    """

    def __init__(self, request: LoadRequest) -> None:
        self.request = request
        self.log = request.log or log
        self.source = ArchiveSource(
            data_dir=request.data_dir,
            name=request.name,
            read_policy=request.read_policy,
        )

    def run(self) -> LoadResult:
        req = self.request
        stats = LoadStats(req.name, self.log)
        create_stage = CreateIndexStage(
            engine=req.engine,
            stats=stats,
            skip_existing=req.skip_existing,
            internal_prefix=req.internal_prefix,
            log=self.log,
        )
        docs_stage = IndexDocsStage(
            engine=req.engine,
            stats=stats,
            batch_size=req.batch_size,
            log=self.log,
        )
        try:
            files = self.source.files()
            self.log.debug("[%s] Archive files in load order: %r", req.name, files)
            records = capture(self.source.iter_records(files, logger=self.log))
            drain(connect(records, create_stage, docs_stage))
        except ArchiverError as exc:
            raise exc.with_context(archive=req.name)

        result = stats.snapshot()
        PostLoadReconciler(
            engine=req.engine,
            migrator=req.migrator,
            internal_prefix=req.internal_prefix,
            log=self.log,
        ).reconcile(result)
        return result
