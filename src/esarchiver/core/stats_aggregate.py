# stats_aggregate.py
# SPDX-License-Identifier: MIT
"""
Aggregation helpers for LoadResult.as_dict() outputs.

Given the reports of several archive runs, produce one merged report that
ORs the status flags of each index and sums its document counters.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_FLAGS = ("created", "skipped", "deleted", "archived")
_DOC_COUNTERS = ("indexed", "archived", "failed")


def _empty_entry() -> dict[str, Any]:
    entry: dict[str, Any] = {flag: False for flag in _FLAGS}
    entry["docs"] = {key: 0 for key in _DOC_COUNTERS}
    return entry


def merge_load_results(results: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Merge a sequence of ``LoadResult.as_dict()``-style dictionaries.

    Raises:
        ValueError: If an entry is not a mapping.
    """
    merged: dict[str, dict[str, Any]] = {}
    for data in results:
        for index, payload in data.items():
            if not isinstance(payload, Mapping):
                raise ValueError(f"Stats entry for {index!r} must be an object.")
            bucket = merged.setdefault(str(index), _empty_entry())
            for flag in _FLAGS:
                bucket[flag] = bool(bucket[flag] or payload.get(flag))
            docs = payload.get("docs") or {}
            for key in _DOC_COUNTERS:
                bucket["docs"][key] += int(docs.get(key, 0))
    return merged


def _is_index_entry(payload: Any) -> bool:
    return isinstance(payload, Mapping) and ("docs" in payload or any(flag in payload for flag in _FLAGS))


def split_reports(data: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    """Return the per-archive reports held in one JSON document.

    The CLI prints ``{archive: {index: entry}}``; a bare ``{index: entry}``
    report is returned as is.
    """
    if data and all(isinstance(v, Mapping) and not _is_index_entry(v) for v in data.values()):
        return list(data.values())
    return [data]
