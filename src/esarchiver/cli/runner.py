# runner.py
# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from ..core.actions import save_archive, unload_archive
from ..core.config import ArchiverConfig
from ..core.engine import ElasticsearchEngine
from ..core.interfaces import Migrator, SearchEngine
from ..core.log import get_logger
from ..core.runner import load_archive
from ..core.stages import DEFAULT_BATCH_SIZE, DEFAULT_INTERNAL_PREFIX
from ..core.stats import LoadResult
from ..sources.archive import ArchiveReadPolicy

log = get_logger(__name__)


@dataclass
class EsArchiver:
    """Load, unload and save archives against one engine and data directory.

    Attributes:
        engine (SearchEngine): Destination (or source, for saving) engine.
        data_dir (Path): Directory holding one subdirectory per archive.
        migrator (Migrator | None): Post-load migration hook for the
            internal metadata indices.
        batch_size (int): Documents per bulk request.
        internal_prefix (str): Prefix of the internal metadata indices.
        read_policy (ArchiveReadPolicy): Reader limits.
        log (logging.Logger): Logger for progress lines.
    """
    engine: SearchEngine
    data_dir: Path
    migrator: Migrator | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    internal_prefix: str = DEFAULT_INTERNAL_PREFIX
    read_policy: ArchiveReadPolicy = field(default_factory=ArchiveReadPolicy)
    log: logging.Logger = field(default_factory=lambda: log)

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)

    def load(self, name: str, *, skip_existing: bool = False) -> LoadResult:
        return load_archive(
            name=name,
            data_dir=self.data_dir,
            engine=self.engine,
            skip_existing=skip_existing,
            log=self.log,
            migrator=self.migrator,
            batch_size=self.batch_size,
            internal_prefix=self.internal_prefix,
            read_policy=self.read_policy,
        )

    def load_if_needed(self, name: str) -> LoadResult:
        """Load ``name`` but leave indices that already exist untouched."""
        return self.load(name, skip_existing=True)

    def unload(self, name: str) -> LoadResult:
        return unload_archive(
            name=name,
            data_dir=self.data_dir,
            engine=self.engine,
            log=self.log,
            migrator=self.migrator,
            internal_prefix=self.internal_prefix,
            read_policy=self.read_policy,
        )

    def save(self, name: str, indices: Sequence[str], *, raw: bool = False) -> LoadResult:
        return save_archive(
            name=name,
            data_dir=self.data_dir,
            engine=self.engine,
            indices=indices,
            raw=raw,
            log=self.log,
        )


def make_archiver(config: ArchiverConfig, *, engine: SearchEngine | None = None) -> EsArchiver:
    """Build an :class:`EsArchiver` from a validated configuration.

    Args:
        config (ArchiverConfig): Declarative settings.
        engine (SearchEngine | None): Pre-built engine; when omitted an
            :class:`ElasticsearchEngine` is created from
            ``config.elasticsearch``.
    """
    config.validate()
    if engine is None:
        engine = ElasticsearchEngine(config.elasticsearch.build_client())
    return EsArchiver(
        engine=engine,
        data_dir=config.load.data_dir,
        migrator=config.migration.build_trigger(),
        batch_size=config.load.batch_size,
        internal_prefix=config.load.internal_index_prefix,
        read_policy=ArchiveReadPolicy(max_frame_chars=config.load.max_frame_chars),
    )


__all__ = ["EsArchiver", "make_archiver"]
