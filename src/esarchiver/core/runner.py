# runner.py
# SPDX-License-Identifier: MIT
"""Orchestration helpers that bridge configuration, engine and pipeline."""
from __future__ import annotations

import logging
from pathlib import Path

from ..sources.archive import ArchiveReadPolicy
from .config import ArchiverConfig
from .engine import ElasticsearchEngine
from .interfaces import Migrator, SearchEngine
from .migrate import HttpMigrationTrigger
from .pipeline import ArchiveLoader, LoadRequest
from .stages import DEFAULT_BATCH_SIZE, DEFAULT_INTERNAL_PREFIX
from .stats import LoadResult

__all__ = ["load_archive", "run_load"]


def load_archive(
    *,
    name: str,
    data_dir: str | Path,
    engine: SearchEngine,
    skip_existing: bool = False,
    log: logging.Logger | None = None,
    migration_url: str | None = None,
    migrator: Migrator | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    internal_prefix: str = DEFAULT_INTERNAL_PREFIX,
    read_policy: ArchiveReadPolicy | None = None,
) -> LoadResult:
    """Load the archive ``<data_dir>/<name>`` into ``engine``.

    Args:
        name (str): Archive name.
        data_dir (str | Path): Directory holding the archives.
        engine (SearchEngine): Destination engine.
        skip_existing (bool): Leave existing indices and their documents
            alone instead of replacing them.
        log (logging.Logger | None): Logger for progress lines.
        migration_url (str | None): Base URL of the platform server; builds
            an :class:`HttpMigrationTrigger` when ``migrator`` is not given.
        migrator (Migrator | None): Explicit migration hook.
        batch_size (int): Documents per bulk request.
        internal_prefix (str): Prefix of the internal metadata indices.
        read_policy (ArchiveReadPolicy | None): Reader limits.

    Returns:
        LoadResult: Per-index status and document counters.

    Raises:
        ArchiverError: On the first fatal failure; nothing is refreshed or
            migrated in that case.
    """
    if migrator is None and migration_url:
        migrator = HttpMigrationTrigger(migration_url)
    request = LoadRequest(
        name=name,
        data_dir=Path(data_dir),
        engine=engine,
        skip_existing=skip_existing,
        log=log,
        migrator=migrator,
        batch_size=batch_size,
        internal_prefix=internal_prefix,
        read_policy=read_policy or ArchiveReadPolicy(),
    )
    return ArchiveLoader(request).run()


def run_load(
    *,
    config: ArchiverConfig,
    name: str,
    engine: SearchEngine | None = None,
) -> dict[str, dict]:
    """Run one load described by ``config`` and return the report as a dict."""
    config.validate()
    if engine is None:
        engine = ElasticsearchEngine(config.elasticsearch.build_client())
    result = load_archive(
        name=name,
        data_dir=config.load.data_dir,
        engine=engine,
        skip_existing=config.load.skip_existing,
        migrator=config.migration.build_trigger(),
        batch_size=config.load.batch_size,
        internal_prefix=config.load.internal_index_prefix,
        read_policy=ArchiveReadPolicy(max_frame_chars=config.load.max_frame_chars),
    )
    return result.as_dict()
