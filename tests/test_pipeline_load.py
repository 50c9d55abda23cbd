import logging
from pathlib import Path

import pytest

from conftest import FakeEngine, RecordingMigrator, doc_record, index_record
from esarchiver.core.errors import (
    ArchiveNotFoundError,
    BulkIndexError,
    IndexCreationError,
    MalformedArchiveError,
    MigrationError,
    RefreshError,
)
from esarchiver.core.pipeline import ArchiveLoader, LoadRequest
from esarchiver.core.runner import load_archive


def _logs_archive(write_archive, name="logs", docs=5):
    return write_archive(
        name,
        {
            "mappings.json": [index_record("logs", mappings={"properties": {"n": {"type": "long"}}})],
            "data.json.gz": [doc_record("logs", str(i)) for i in range(docs)],
        },
    )


def test_fresh_load_indexes_every_document(write_archive, data_dir: Path, engine: FakeEngine):
    _logs_archive(write_archive, docs=7)

    result = load_archive(name="logs", data_dir=data_dir, engine=engine)

    entry = result["logs"]
    assert entry.created and not entry.skipped and not entry.deleted
    assert entry.docs == {"indexed": 7, "archived": 7, "failed": 0}
    assert engine.doc_count("logs") == 7
    assert engine.ops("refresh") == [("refresh", ["logs"])]
    assert result.name == "logs"


def test_second_load_with_skip_existing_writes_nothing(write_archive, data_dir: Path, engine: FakeEngine):
    _logs_archive(write_archive)
    load_archive(name="logs", data_dir=data_dir, engine=engine)
    engine.calls.clear()
    bulk_before = engine.bulk_calls

    result = load_archive(name="logs", data_dir=data_dir, engine=engine, skip_existing=True)

    assert all(entry.skipped for entry in result.values())
    assert result["logs"].docs["indexed"] == 0
    assert engine.bulk_calls == bulk_before
    assert engine.ops("create") == []
    assert engine.ops("delete") == []


def test_second_load_replaces_and_reindexes(write_archive, data_dir: Path, engine: FakeEngine):
    _logs_archive(write_archive, docs=4)
    first = load_archive(name="logs", data_dir=data_dir, engine=engine)

    second = load_archive(name="logs", data_dir=data_dir, engine=engine)

    assert second["logs"].deleted and second["logs"].created
    assert second["logs"].docs["indexed"] == first["logs"].docs["indexed"] == 4
    assert engine.doc_count("logs") == 4


def test_deleted_indices_are_not_refreshed(write_archive, data_dir: Path, engine: FakeEngine):
    _logs_archive(write_archive, docs=1)
    load_archive(name="logs", data_dir=data_dir, engine=engine)
    engine.calls.clear()

    load_archive(name="logs", data_dir=data_dir, engine=engine)

    assert engine.ops("refresh") == []


def test_mapping_files_load_before_data_regardless_of_listing_order(
    write_archive, data_dir: Path, engine: FakeEngine
):
    write_archive(
        "ordered",
        {
            "a_data.json": [doc_record("logs", "1")],
            "z_mappings.json": [index_record("logs", settings={"index": {"number_of_shards": "1"}})],
        },
    )

    load_archive(name="ordered", data_dir=data_dir, engine=engine)

    kinds = [call[0] for call in engine.calls]
    assert kinds.index("create") < kinds.index("bulk")
    assert engine.indices["logs"]["settings"] == {"index": {"number_of_shards": "1"}}


def test_failure_on_third_batch_stops_without_refresh_or_migration(write_archive, data_dir: Path):
    write_archive(
        "big",
        {
            "mappings.json": [index_record("logs"), index_record(".kibana_1")],
            "data.json": [doc_record("logs", str(i)) for i in range(20)],
        },
    )
    engine = FakeEngine(fail_bulk_on={3})
    migrator = RecordingMigrator()

    with pytest.raises(BulkIndexError) as excinfo:
        load_archive(name="big", data_dir=data_dir, engine=engine, migrator=migrator, batch_size=2)

    assert excinfo.value.archive == "big"
    assert "archive='big'" in str(excinfo.value)
    assert engine.bulk_calls == 3
    assert engine.ops("refresh") == []
    assert migrator.calls == []


def test_internal_index_triggers_single_refresh_and_migration(
    write_archive, data_dir: Path, engine: FakeEngine, migrator: RecordingMigrator
):
    write_archive(
        "dash",
        {
            "mappings.json": [index_record("foo"), index_record(".kibana")],
            "data.json.gz": [doc_record("foo", "1"), doc_record(".kibana", "config:7"), doc_record("foo", "2")],
        },
    )

    result = load_archive(name="dash", data_dir=data_dir, engine=engine, migrator=migrator)

    assert engine.ops("refresh") == [("refresh", ["foo", ".kibana"])]
    assert migrator.calls == [[".kibana"]]
    assert result.docs_indexed() == 3


def test_internal_index_without_migrator_logs_warning(
    write_archive, data_dir: Path, engine: FakeEngine, test_log, caplog
):
    write_archive("dash", {"mappings.json": [index_record(".kibana")]})

    with caplog.at_level(logging.WARNING, logger=test_log.name):
        load_archive(name="dash", data_dir=data_dir, engine=engine, log=test_log)

    assert any("no migration target" in r.getMessage() for r in caplog.records)


def test_progress_lines_use_archive_prefix(write_archive, data_dir: Path, engine: FakeEngine, test_log, caplog):
    _logs_archive(write_archive, docs=3)

    with caplog.at_level(logging.INFO, logger=test_log.name):
        load_archive(name="logs", data_dir=data_dir, engine=engine, log=test_log)

    messages = [r.getMessage() for r in caplog.records]
    assert "[logs] Loading 'mappings.json'" in messages
    assert "[logs] Created index 'logs'" in messages
    assert "[logs] Indexed 3 docs into 'logs'" in messages


def test_docs_for_index_without_metadata_are_still_indexed(write_archive, data_dir: Path, engine: FakeEngine):
    write_archive("bare", {"data.json": [doc_record("bare", "1")]})

    result = load_archive(name="bare", data_dir=data_dir, engine=engine)

    assert result["bare"].docs["indexed"] == 1
    assert not result["bare"].created


def test_missing_archive_raises_with_name(data_dir: Path, engine: FakeEngine):
    with pytest.raises(ArchiveNotFoundError) as excinfo:
        load_archive(name="ghost", data_dir=data_dir, engine=engine)
    assert excinfo.value.archive == "ghost"


def test_malformed_file_reports_archive_and_file(write_archive, data_dir: Path, engine: FakeEngine):
    write_archive(
        "broken",
        {"mappings.json": [index_record("logs")], "data.json": "{\"type\": \"doc\", \"value\": \n"},
    )

    with pytest.raises(MalformedArchiveError) as excinfo:
        load_archive(name="broken", data_dir=data_dir, engine=engine)

    assert excinfo.value.archive == "broken"
    assert excinfo.value.file == "data.json"
    assert engine.ops("refresh") == []


def test_index_creation_failure_is_fatal(write_archive, data_dir: Path):
    write_archive("bad", {"mappings.json": [index_record("nope")], "data.json": [doc_record("nope", "1")]})
    engine = FakeEngine(fail_create={"nope"})

    with pytest.raises(IndexCreationError) as excinfo:
        load_archive(name="bad", data_dir=data_dir, engine=engine)

    assert excinfo.value.index == "nope"
    assert engine.bulk_calls == 0


def test_refresh_failure_raises_refresh_error(write_archive, data_dir: Path):
    _logs_archive(write_archive, docs=1)
    engine = FakeEngine(fail_refresh=True)

    with pytest.raises(RefreshError):
        load_archive(name="logs", data_dir=data_dir, engine=engine)
    assert engine.doc_count("logs") == 1


def test_migration_failure_raises_migration_error(write_archive, data_dir: Path, engine: FakeEngine):
    write_archive("dash", {"mappings.json": [index_record(".kibana")]})

    with pytest.raises(MigrationError) as excinfo:
        load_archive(name="dash", data_dir=data_dir, engine=engine, migrator=RecordingMigrator(fail=True))
    assert excinfo.value.archive == "dash"


def test_archive_loader_uses_request_settings(write_archive, data_dir: Path, engine: FakeEngine):
    write_archive(
        "custom",
        {"mappings.json": [index_record("sys_meta")], "data.json": [doc_record("sys_meta", str(i)) for i in range(5)]},
    )
    migrator = RecordingMigrator()
    request = LoadRequest(
        name="custom",
        data_dir=data_dir,
        engine=engine,
        migrator=migrator,
        batch_size=2,
        internal_prefix="sys_",
    )

    result = ArchiveLoader(request).run()

    assert engine.ops("bulk") == [("bulk", 2), ("bulk", 2), ("bulk", 1)]
    assert migrator.calls == [["sys_meta"]]
    assert result["sys_meta"].docs["indexed"] == 5
