import fnmatch
import gzip
import json
import logging
from pathlib import Path

import pytest

from esarchiver.core.interfaces import BulkItemResult, IndexDefinition, StoredDocument


class FakeEngine:
    """In-memory SearchEngine with call recording and failure injection."""

    def __init__(self, *, fail_bulk_on=(), reject_ids=(), fail_create=(), fail_refresh=False):
        self.indices = {}
        self.calls = []
        self.bulk_calls = 0
        self.fail_bulk_on = set(fail_bulk_on)
        self.reject_ids = set(reject_ids)
        self.fail_create = set(fail_create)
        self.fail_refresh = fail_refresh
        self._next_id = 0

    # helpers -------------------------------------------------------------
    def add_index(self, name, *, settings=None, mappings=None, aliases=None, docs=None):
        self.indices[name] = {
            "settings": settings,
            "mappings": mappings,
            "aliases": dict(aliases or {}),
            "docs": dict(docs or {}),
        }

    def ops(self, name=None):
        return [call for call in self.calls if name is None or call[0] == name]

    def doc_count(self, index):
        return len(self.indices[index]["docs"])

    def _alias_owner(self, alias):
        return [name for name, body in self.indices.items() if alias in body["aliases"]]

    # SearchEngine --------------------------------------------------------
    def index_exists(self, index):
        self.calls.append(("exists", index))
        return index in self.indices or bool(self._alias_owner(index))

    def create_index(self, index, *, settings=None, mappings=None, aliases=None):
        self.calls.append(("create", index))
        if index in self.fail_create:
            raise RuntimeError(f"create rejected for {index}")
        if index in self.indices:
            raise RuntimeError(f"resource_already_exists_exception: {index}")
        self.add_index(index, settings=settings, mappings=mappings, aliases=aliases)

    def delete_index(self, indices):
        self.calls.append(("delete", list(indices)))
        for name in indices:
            if name not in self.indices:
                raise RuntimeError(f"index_not_found_exception: {name}")
            del self.indices[name]

    def resolve_indices(self, pattern):
        self.calls.append(("resolve", pattern))
        names = set()
        for name, body in self.indices.items():
            if fnmatch.fnmatchcase(name, pattern):
                names.add(name)
            if any(fnmatch.fnmatchcase(alias, pattern) for alias in body["aliases"]):
                names.add(name)
        return sorted(names)

    def bulk_index(self, docs):
        self.bulk_calls += 1
        self.calls.append(("bulk", len(docs)))
        if self.bulk_calls in self.fail_bulk_on:
            raise ConnectionError(f"bulk request {self.bulk_calls} failed")
        results = []
        for doc in docs:
            if doc.id is not None and doc.id in self.reject_ids:
                results.append(
                    BulkItemResult(index=doc.index, id=doc.id, ok=False, status=400, error="mapper_parsing_exception")
                )
                continue
            if doc.index not in self.indices:
                self.add_index(doc.index)
            doc_id = doc.id
            if doc_id is None:
                self._next_id += 1
                doc_id = f"auto-{self._next_id}"
            self.indices[doc.index]["docs"][doc_id] = dict(doc.source)
            results.append(BulkItemResult(index=doc.index, id=doc_id, ok=True, status=201))
        return results

    def refresh(self, indices):
        self.calls.append(("refresh", list(indices)))
        if self.fail_refresh:
            raise RuntimeError("refresh failed")

    def get_indices(self, pattern):
        return [
            IndexDefinition(
                index=name,
                settings=self.indices[name]["settings"],
                mappings=self.indices[name]["mappings"],
                aliases=self.indices[name]["aliases"] or None,
            )
            for name in self.resolve_indices(pattern)
        ]

    def scan_documents(self, index):
        for doc_id, source in self.indices[index]["docs"].items():
            yield StoredDocument(index=index, id=doc_id, source=source)


class RecordingMigrator:
    def __init__(self, *, fail=False):
        self.calls = []
        self.fail = fail

    def migrate(self, indices):
        self.calls.append(list(indices))
        if self.fail:
            raise RuntimeError("migration endpoint down")


def index_record(index, *, settings=None, mappings=None, aliases=None):
    value = {"index": index}
    if settings is not None:
        value["settings"] = settings
    if mappings is not None:
        value["mappings"] = mappings
    if aliases is not None:
        value["aliases"] = aliases
    return {"type": "index", "value": value}


def doc_record(index, doc_id, source=None, **meta):
    value = {"index": index, "id": doc_id, "source": source if source is not None else {"n": doc_id}}
    value.update(meta)
    return {"type": "doc", "value": value}


def _frames(records):
    return "\n\n".join(json.dumps(r, indent=2) for r in records) + "\n"


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    root = tmp_path / "archives"
    root.mkdir()
    return root


@pytest.fixture
def write_archive(data_dir: Path):
    """Return ``write(name, {filename: [records]})``; ``.gz`` files are gzipped."""

    def _write(name, files):
        archive = data_dir / name
        archive.mkdir(parents=True, exist_ok=True)
        for filename, records in files.items():
            text = records if isinstance(records, str) else _frames(records)
            path = archive / filename
            if filename.endswith(".gz"):
                path.write_bytes(gzip.compress(text.encode("utf-8")))
            else:
                path.write_text(text, encoding="utf-8")
        return archive

    return _write


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def migrator() -> RecordingMigrator:
    return RecordingMigrator()


@pytest.fixture
def test_log() -> logging.Logger:
    logger = logging.getLogger("tests.esarchiver")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture(autouse=True)
def _restore_package_logger():
    logger = logging.getLogger("esarchiver")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    client_levels = {name: logging.getLogger(name).level for name in ("elastic_transport", "elasticsearch")}
    yield
    for name, client_level in client_levels.items():
        logging.getLogger(name).setLevel(client_level)
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate
