# records.py
# SPDX-License-Identifier: MIT
"""Typed archive records and their JSON wire shape.

An archive is a sequence of two kinds of records::

    {"type": "index", "value": {"index": "logs", "settings": {...}, "mappings": {...}}}
    {"type": "doc", "value": {"index": "logs", "id": "1", "source": {...}}}

The wire dicts are converted into :class:`IndexRecord` / :class:`DocRecord`
as soon as they are read so that downstream stages dispatch on the Python
type instead of poking at dictionary keys.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from .errors import MalformedArchiveError

__all__ = [
    "RECORD_SEPARATOR",
    "INDEX_RECORD_TYPE",
    "DOC_RECORD_TYPE",
    "DOC_META_KEYS",
    "IndexRecord",
    "DocRecord",
    "ArchiveRecord",
    "record_from_dict",
    "record_to_dict",
    "format_record",
    "is_internal_index",
]

RECORD_SEPARATOR = "\n\n"
INDEX_RECORD_TYPE = "index"
DOC_RECORD_TYPE = "doc"

# Document value keys that are engine metadata rather than payload.
DOC_META_KEYS = ("type", "routing")


@dataclass(frozen=True, slots=True)
class IndexRecord:
    """Creation parameters for one target index.

    Attributes:
        index (str): Target index name.
        settings (Mapping[str, Any] | None): Index settings as exported.
        mappings (Mapping[str, Any] | None): Field mappings.
        aliases (Mapping[str, Any] | None): Aliases to attach on creation.
    """

    index: str
    settings: Mapping[str, Any] | None = None
    mappings: Mapping[str, Any] | None = None
    aliases: Mapping[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class DocRecord:
    """A single document destined for ``index``.

    Attributes:
        index (str): Target index name.
        source (Mapping[str, Any]): Document body.
        id (str | None): Document id; the engine assigns one when omitted.
        meta (Mapping[str, Any]): Engine-specific metadata such as
            ``type`` or ``routing``.
    """

    index: str
    source: Mapping[str, Any]
    id: str | None = None
    meta: Mapping[str, Any] = field(default_factory=dict)


ArchiveRecord = Union[IndexRecord, DocRecord]


def _optional_mapping(value: Any, *, key: str, where: str) -> Mapping[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise MalformedArchiveError(f"{where}: {key!r} must be an object, got {type(value).__name__}")
    return value


def record_from_dict(obj: Any, *, where: str = "record") -> ArchiveRecord:
    """Convert a decoded wire object into a typed record.

    Args:
        obj (Any): Value produced by ``json.loads`` for one record.
        where (str): Human readable position used in error messages.

    Returns:
        ArchiveRecord: The typed record.

    Raises:
        MalformedArchiveError: If the object does not have a known record
            shape.
    """
    if not isinstance(obj, Mapping):
        raise MalformedArchiveError(f"{where}: expected a JSON object, got {type(obj).__name__}")
    rtype = obj.get("type")
    value = obj.get("value")
    if not isinstance(value, Mapping):
        raise MalformedArchiveError(f"{where}: record is missing its 'value' object")
    index = value.get("index")
    if not isinstance(index, str) or not index:
        raise MalformedArchiveError(f"{where}: record value has no index name")

    if rtype == INDEX_RECORD_TYPE:
        return IndexRecord(
            index=index,
            settings=_optional_mapping(value.get("settings"), key="settings", where=where),
            mappings=_optional_mapping(value.get("mappings"), key="mappings", where=where),
            aliases=_optional_mapping(value.get("aliases"), key="aliases", where=where),
        )
    if rtype == DOC_RECORD_TYPE:
        source = value.get("source")
        if not isinstance(source, Mapping):
            raise MalformedArchiveError(f"{where}: doc record has no 'source' object")
        doc_id = value.get("id")
        if doc_id is not None:
            doc_id = str(doc_id)
        meta = {key: value[key] for key in DOC_META_KEYS if value.get(key) is not None}
        return DocRecord(index=index, source=source, id=doc_id, meta=meta)

    raise MalformedArchiveError(f"{where}: unknown record type {rtype!r}")


def record_to_dict(record: ArchiveRecord) -> dict[str, Any]:
    """Return the wire dict for a typed record."""
    if isinstance(record, IndexRecord):
        value: dict[str, Any] = {"index": record.index}
        if record.settings is not None:
            value["settings"] = dict(record.settings)
        if record.mappings is not None:
            value["mappings"] = dict(record.mappings)
        if record.aliases is not None:
            value["aliases"] = dict(record.aliases)
        return {"type": INDEX_RECORD_TYPE, "value": value}
    if isinstance(record, DocRecord):
        value = {"index": record.index}
        for key in DOC_META_KEYS:
            if record.meta.get(key) is not None:
                value[key] = record.meta[key]
        if record.id is not None:
            value["id"] = record.id
        value["source"] = dict(record.source)
        return {"type": DOC_RECORD_TYPE, "value": value}
    raise TypeError(f"Not an archive record: {type(record).__name__}")


def format_record(record: ArchiveRecord) -> str:
    """Serialize a record as one pretty-printed frame (without separator)."""
    return json.dumps(record_to_dict(record), indent=2, ensure_ascii=False)


def is_internal_index(index: str, prefix: str) -> bool:
    """Return True if ``index`` belongs to the internal metadata index family."""
    return bool(prefix) and index.startswith(prefix)
