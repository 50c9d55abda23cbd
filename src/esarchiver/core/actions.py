# actions.py
# SPDX-License-Identifier: MIT
"""Unload and save actions that complement the archive loader."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any

from ..sinks.archive import ArchiveWriter
from ..sources.archive import ArchiveReadPolicy, ArchiveSource
from .errors import ArchiverError, MigrationError
from .interfaces import IndexDefinition, Migrator, SearchEngine
from .log import get_logger
from .records import DocRecord, IndexRecord, is_internal_index
from .stages import DEFAULT_INTERNAL_PREFIX, DeleteIndexStage
from .stats import LoadResult, LoadStats
from .streams import capture, connect, drain


__all__ = [
    "MAPPINGS_FILENAME",
    "DATA_FILENAME",
    "VOLATILE_INDEX_SETTINGS",
    "clean_settings",
    "unload_archive",
    "save_archive",
]

MAPPINGS_FILENAME = "mappings.json"
DATA_FILENAME = "data.json"

# Settings the cluster assigns on creation; they cannot be replayed.
VOLATILE_INDEX_SETTINGS = ("uuid", "version", "creation_date", "provided_name")


def clean_settings(settings: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Return ``settings`` without the cluster-assigned ``index.*`` keys."""
    if settings is None:
        return None
    cleaned = dict(settings)
    index_settings = cleaned.get("index")
    if isinstance(index_settings, Mapping):
        cleaned["index"] = {
            key: value for key, value in index_settings.items() if key not in VOLATILE_INDEX_SETTINGS
        }
    return cleaned


def unload_archive(
    *,
    name: str,
    data_dir: str | Path,
    engine: SearchEngine,
    log: logging.Logger | None = None,
    migrator: Migrator | None = None,
    internal_prefix: str = DEFAULT_INTERNAL_PREFIX,
    read_policy: ArchiveReadPolicy | None = None,
) -> LoadResult:
    """Delete every index an archive would create.

    Document records are read but ignored. When an internal index was
    deleted the migrator runs once afterwards so the platform can rebuild
    its metadata index.

    Raises:
        ArchiverError: Any archive or engine failure, with the archive name
            attached.
    """
    lg = log or get_logger(__name__)
    source = ArchiveSource(data_dir=Path(data_dir), name=name, read_policy=read_policy or ArchiveReadPolicy())
    stats = LoadStats(name, lg)
    stage = DeleteIndexStage(engine=engine, stats=stats, internal_prefix=internal_prefix, log=lg)
    try:
        files = source.files()
        drain(connect(capture(source.iter_records(files, logger=lg)), stage))
    except ArchiverError as exc:
        raise exc.with_context(archive=name)

    if stage.internal_touched:
        internal = [i for i in stats.indices() if is_internal_index(i, internal_prefix)] or [internal_prefix]
        if migrator is None:
            lg.warning("[%s] Internal indices were deleted but no migration target is configured", name)
        else:
            try:
                migrator.migrate(internal)
            except MigrationError as exc:
                raise exc.with_context(archive=name)
            except Exception as exc:
                raise MigrationError(f"Migration failed: {exc}", archive=name) from exc
    return stats.snapshot()


def _collect_definitions(engine: SearchEngine, patterns: Sequence[str]) -> list[IndexDefinition]:
    seen: dict[str, IndexDefinition] = {}
    for pattern in patterns:
        for definition in engine.get_indices(pattern):
            seen.setdefault(definition.index, definition)
    return list(seen.values())


def _iter_docs(engine: SearchEngine, indices: Sequence[str], stats: LoadStats) -> Iterator[DocRecord]:
    for index in indices:
        for doc in engine.scan_documents(index):
            stats.archived_doc(doc.index)
            meta = {"routing": doc.routing} if doc.routing is not None else {}
            yield DocRecord(index=doc.index, source=doc.source, id=doc.id, meta=meta)


def _discard(writers: Sequence[ArchiveWriter]) -> None:
    for writer in writers:
        writer.discard()


def save_archive(
    *,
    name: str,
    data_dir: str | Path,
    engine: SearchEngine,
    indices: Sequence[str],
    raw: bool = False,
    log: logging.Logger | None = None,
) -> LoadResult:
    """Export the indices matching ``indices`` into ``<data_dir>/<name>``.

    Writes ``mappings.json`` with one index record per concrete index and
    ``data.json.gz`` (``data.json`` when ``raw``) with every document. Both
    files are written through temp files, so a failed save leaves any
    previous archive of the same name intact.

    Raises:
        ValueError: If ``indices`` is empty.
        ArchiverError: If the engine cannot be read.
    """
    if not indices:
        raise ValueError("At least one index name or pattern is required")
    lg = log or get_logger(__name__)
    out_dir = Path(data_dir) / name
    stats = LoadStats(name, lg)

    data_name = DATA_FILENAME if raw else f"{DATA_FILENAME}.gz"
    writers = [ArchiveWriter(out_dir / MAPPINGS_FILENAME), ArchiveWriter(out_dir / data_name, gzip=not raw)]
    mappings_writer, data_writer = writers
    try:
        definitions = _collect_definitions(engine, indices)
        mappings_writer.open()
        for definition in definitions:
            mappings_writer.write(
                IndexRecord(
                    index=definition.index,
                    settings=clean_settings(definition.settings),
                    mappings=definition.mappings,
                    aliases=definition.aliases,
                )
            )
            stats.archived_index(definition.index)
        mappings_writer.finish()

        data_writer.open()
        data_writer.write_all(_iter_docs(engine, [d.index for d in definitions], stats))
        data_writer.finish()
    except ArchiverError as exc:
        _discard(writers)
        raise exc.with_context(archive=name)
    except Exception as exc:
        _discard(writers)
        raise ArchiverError(f"Failed to save archive: {exc}", archive=name) from exc
    # Both files are complete; replace the previous archive only now.
    for writer in writers:
        writer.commit()

    result = stats.snapshot()
    for index, entry in result.items():
        lg.info("[%s] Archived %d docs from %r", name, entry.docs_archived, index)
    return result
