# engine.py
# SPDX-License-Identifier: MIT
"""SearchEngine implementation backed by the official Elasticsearch client."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from elasticsearch import Elasticsearch, NotFoundError
from elasticsearch.helpers import scan, streaming_bulk

from .interfaces import BulkItemResult, IndexDefinition, StoredDocument
from .log import get_logger
from .records import DocRecord

log = get_logger(__name__)

__all__ = ["ElasticsearchEngine"]

# Internal indices are usually hidden; wildcards must still reach them.
_EXPAND_WILDCARDS = "all"


class ElasticsearchEngine:
    """Adapter exposing the archive operations on an ``Elasticsearch`` client.

    Document ``type`` metadata from old archives is dropped because mapping
    types no longer exist on current clusters; ``routing`` is preserved.
    """

    def __init__(self, client: Elasticsearch) -> None:
        self.client = client

    def index_exists(self, index: str) -> bool:
        return bool(self.client.indices.exists(index=index))

    def create_index(
        self,
        index: str,
        *,
        settings: Mapping[str, Any] | None = None,
        mappings: Mapping[str, Any] | None = None,
        aliases: Mapping[str, Any] | None = None,
    ) -> None:
        self.client.indices.create(
            index=index,
            settings=dict(settings) if settings is not None else None,
            mappings=dict(mappings) if mappings is not None else None,
            aliases=dict(aliases) if aliases is not None else None,
        )

    def delete_index(self, indices: Sequence[str]) -> None:
        self.client.indices.delete(index=list(indices), expand_wildcards=_EXPAND_WILDCARDS)

    def resolve_indices(self, pattern: str) -> list[str]:
        try:
            resp = self.client.indices.get_alias(index=pattern, expand_wildcards=_EXPAND_WILDCARDS)
        except NotFoundError:
            return []
        return sorted(resp.body)

    @staticmethod
    def _to_action(doc: DocRecord) -> dict[str, Any]:
        action: dict[str, Any] = {
            "_op_type": "index",
            "_index": doc.index,
            "_source": dict(doc.source),
        }
        if doc.id is not None:
            action["_id"] = doc.id
        routing = doc.meta.get("routing")
        if routing is not None:
            action["routing"] = routing
        return action

    def bulk_index(self, docs: Sequence[DocRecord]) -> list[BulkItemResult]:
        results: list[BulkItemResult] = []
        # streaming_bulk reports items in action order.
        outcomes = streaming_bulk(
            self.client,
            [self._to_action(doc) for doc in docs],
            chunk_size=max(1, len(docs)),
            raise_on_error=False,
            raise_on_exception=True,
            max_retries=0,
        )
        for doc, (ok, info) in zip(docs, outcomes):
            item = next(iter(info.values()), {}) if isinstance(info, Mapping) else {}
            results.append(
                BulkItemResult(
                    index=item.get("_index") or doc.index,
                    id=item.get("_id", doc.id),
                    ok=bool(ok),
                    status=item.get("status"),
                    error=item.get("error"),
                )
            )
        return results

    def refresh(self, indices: Sequence[str]) -> None:
        self.client.indices.refresh(index=list(indices), expand_wildcards=_EXPAND_WILDCARDS)

    def get_indices(self, pattern: str) -> list[IndexDefinition]:
        try:
            resp = self.client.indices.get(index=pattern, expand_wildcards=_EXPAND_WILDCARDS)
        except NotFoundError:
            return []
        definitions = []
        for name, body in sorted(resp.body.items()):
            definitions.append(
                IndexDefinition(
                    index=name,
                    settings=body.get("settings"),
                    mappings=body.get("mappings"),
                    aliases=body.get("aliases"),
                )
            )
        return definitions

    def scan_documents(self, index: str) -> Iterator[StoredDocument]:
        for hit in scan(self.client, index=index, query={"query": {"match_all": {}}}):
            yield StoredDocument(
                index=hit["_index"],
                id=hit.get("_id"),
                source=hit.get("_source") or {},
                routing=hit.get("_routing"),
            )
