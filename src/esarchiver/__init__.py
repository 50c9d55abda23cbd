# __init__.py
# SPDX-License-Identifier: MIT
"""
Top-level package exports for :mod:`esarchiver`.

Public surface and stability
----------------------------
The symbols listed in :data:`PRIMARY_API` are the recommended public surface
and are exported via :data:`__all__`. In general, callers should:

- Build a configuration via :class:`ArchiverConfig` or load one from
  TOML/JSON with :func:`load_config_from_path`.
- Either call :func:`load_archive` with an engine, or build an
  :class:`EsArchiver` with :func:`make_archiver` and use its ``load``,
  ``load_if_needed``, ``unload`` and ``save`` methods.
- Inspect the returned :class:`LoadResult`.

Archive format
--------------
An archive is a directory holding ``mappings.json`` (index records) and
``data.json.gz`` (document records). Records are JSON objects separated by a
blank line; any file may be gzip compressed. Files whose name contains
``mappings`` are always read first.

Examples:
    Load an archive into a local cluster::

        >>> from elasticsearch import Elasticsearch
        >>> from esarchiver import ElasticsearchEngine, load_archive
        >>> engine = ElasticsearchEngine(Elasticsearch("http://localhost:9200"))
        >>> result = load_archive(name="logstash", data_dir="archives", engine=engine)
        >>> counts = result["logstash-0"].docs
"""


from __future__ import annotations

# ---------------------------------------------------------------------------
# Package version
# ---------------------------------------------------------------------------
try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("esarchiver")
except Exception:  # PackageNotFoundError or runtime env oddities
    __version__ = "0.0.0+unknown"


# ---------------------------------------------------------------------------
# Primary public API (stable; exported via __all__)
# ---------------------------------------------------------------------------
from .cli.runner import EsArchiver, make_archiver
from .core.actions import save_archive, unload_archive
from .core.config import ArchiverConfig, load_config_from_path
from .core.engine import ElasticsearchEngine
from .core.errors import (
    ArchiveNotFoundError,
    ArchiverError,
    BulkIndexError,
    IndexCreationError,
    IndexDeletionError,
    MalformedArchiveError,
    MigrationError,
    RefreshError,
)
from .core.runner import load_archive
from .core.stats import IndexResult, LoadResult

# ---------------------------------------------------------------------------
# Advanced / expert API (imported for convenience; not exported via __all__)
# ---------------------------------------------------------------------------
from .core.config import ElasticsearchConfig, LoadConfig, LoggingConfig, MigrationConfig
from .core.interfaces import BulkItemResult, IndexDefinition, Migrator, SearchEngine, StoredDocument
from .core.log import configure_logging, get_logger, set_client_log_level
from .core.migrate import HttpMigrationTrigger
from .core.pipeline import ArchiveLoader, LoadRequest, PostLoadReconciler
from .core.records import DocRecord, IndexRecord, record_from_dict, record_to_dict
from .core.stats import LoadStats
from .core.stats_aggregate import merge_load_results
from .sinks.archive import ArchiveWriter
from .sources.archive import ArchiveReadPolicy, ArchiveSource, iter_archive_records

# ---------------------------------------------------------------------------
# Stable export list
# ---------------------------------------------------------------------------
PRIMARY_API = [
    "__version__",
    "ArchiverConfig",
    "load_config_from_path",
    "load_archive",
    "unload_archive",
    "save_archive",
    "EsArchiver",
    "make_archiver",
    "ElasticsearchEngine",
    "LoadResult",
    "IndexResult",
    "ArchiverError",
    "ArchiveNotFoundError",
    "MalformedArchiveError",
    "IndexCreationError",
    "IndexDeletionError",
    "BulkIndexError",
    "RefreshError",
    "MigrationError",
]

__all__ = list(PRIMARY_API)
