import json
import logging
from pathlib import Path

import pytest

import esarchiver.core.config as config_mod
from esarchiver.core.config import ArchiverConfig, LoggingConfig, load_config_from_path
from esarchiver.core.migrate import HttpMigrationTrigger


def test_defaults_validate():
    cfg = ArchiverConfig()
    cfg.validate()
    assert cfg.load.batch_size == 300
    assert cfg.load.internal_index_prefix == ".kibana"
    assert cfg.migration.build_trigger() is None


def test_from_dict_coerces_nested_types():
    cfg = ArchiverConfig.from_dict(
        {
            "elasticsearch": {"hosts": ["http://a:9200", "http://b:9200"], "request_timeout": "5"},
            "load": {"data_dir": "fixtures/archives", "batch_size": "50", "skip_existing": True},
            "migration": {"base_url": "http://kibana:5601", "headers": {"kbn-xsrf": "x"}},
            "logging": {"level": "DEBUG"},
        }
    )

    assert cfg.elasticsearch.hosts == ("http://a:9200", "http://b:9200")
    assert cfg.elasticsearch.request_timeout == 5.0
    assert cfg.load.data_dir == Path("fixtures/archives")
    assert cfg.load.batch_size == 50
    assert cfg.load.skip_existing is True
    trigger = cfg.migration.build_trigger()
    assert isinstance(trigger, HttpMigrationTrigger)
    assert trigger.headers == {"kbn-xsrf": "x"}


def test_single_host_string_is_accepted():
    cfg = ArchiverConfig.from_dict({"elasticsearch": {"hosts": "http://only:9200"}})
    assert cfg.elasticsearch.hosts == ("http://only:9200",)


def test_unknown_keys_are_rejected():
    with pytest.raises(ValueError, match="batchsize"):
        ArchiverConfig.from_dict({"load": {"batchsize": 10}})


def test_to_dict_omits_secrets(tmp_path: Path):
    cfg = ArchiverConfig()
    cfg.elasticsearch.api_key = "secret"
    cfg.elasticsearch.username = "elastic"
    cfg.elasticsearch.password = "changeme"

    data = cfg.to_dict()

    assert "api_key" not in data["elasticsearch"]
    assert "password" not in data["elasticsearch"]
    assert data["elasticsearch"]["username"] == "elastic"
    assert data["load"]["data_dir"] == "archives"

    path = cfg.to_json(tmp_path / "cfg.json")
    loaded = ArchiverConfig.from_json(path)
    assert loaded.elasticsearch.username == "elastic"
    assert loaded.elasticsearch.password is None
    assert json.loads(Path(path).read_text(encoding="utf-8"))["load"]["batch_size"] == 300


def test_from_toml(tmp_path: Path):
    path = tmp_path / "esarchiver.toml"
    path.write_text(
        """
[elasticsearch]
hosts = ["https://es:9200"]
verify_certs = false

[load]
data_dir = "archives/dev"
batch_size = 25

[migration]
base_url = "http://kibana:5601"
path = "/custom"
""",
        encoding="utf-8",
    )

    cfg = load_config_from_path(path)

    assert cfg.elasticsearch.hosts == ("https://es:9200",)
    assert cfg.elasticsearch.verify_certs is False
    assert cfg.load.data_dir == Path("archives/dev")
    assert cfg.load.batch_size == 25
    assert cfg.migration.build_trigger().url == "http://kibana:5601/custom"


def test_load_config_rejects_other_extensions(tmp_path: Path):
    with pytest.raises(ValueError):
        load_config_from_path(tmp_path / "cfg.yaml")


@pytest.mark.parametrize(
    "section, field, value",
    [
        ("load", "batch_size", 0),
        ("load", "internal_index_prefix", ""),
        ("load", "max_frame_chars", 0),
        ("elasticsearch", "hosts", ()),
        ("migration", "timeout", 0),
    ],
)
def test_validate_rejects_bad_values(section, field, value):
    cfg = ArchiverConfig()
    setattr(getattr(cfg, section), field, value)
    with pytest.raises(ValueError):
        cfg.validate()


def test_validate_rejects_password_without_username():
    cfg = ArchiverConfig()
    cfg.elasticsearch.password = "pw"
    with pytest.raises(ValueError):
        cfg.validate()


def test_migration_can_be_disabled():
    cfg = ArchiverConfig.from_dict({"migration": {"base_url": "http://kibana:5601", "enabled": False}})
    assert cfg.migration.build_trigger() is None


def test_build_client_passes_auth(monkeypatch):
    calls = []

    class FakeClient:
        def __init__(self, hosts, **kwargs):
            calls.append((hosts, kwargs))

    monkeypatch.setattr(config_mod, "Elasticsearch", FakeClient)
    cfg = ArchiverConfig()
    cfg.elasticsearch.username = "elastic"
    cfg.elasticsearch.password = "pw"
    cfg.elasticsearch.ca_certs = "/etc/ca.pem"
    cfg.elasticsearch.build_client()

    cfg.elasticsearch.api_key = "key"
    cfg.elasticsearch.build_client()

    assert calls[0][0] == ["http://localhost:9200"]
    assert calls[0][1]["basic_auth"] == ("elastic", "pw")
    assert calls[0][1]["ca_certs"] == "/etc/ca.pem"
    assert calls[1][1]["api_key"] == "key"
    assert "basic_auth" not in calls[1][1]


def test_logging_config_apply_sets_level():
    LoggingConfig(level="DEBUG").apply()
    assert logging.getLogger("esarchiver").level == logging.DEBUG
