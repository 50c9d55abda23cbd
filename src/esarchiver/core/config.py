# config.py
# SPDX-License-Identifier: MIT
"""Configuration models and helpers for archiver runs.

This module defines declarative dataclasses for the Elasticsearch
connection, load behaviour, the migration trigger and logging, along with
helpers for serializing and loading configurations from JSON and TOML.
"""
from __future__ import annotations

import json
try:  # pragma: no cover - optional dependency
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    try:
        import tomli as tomllib  # type: ignore[assignment]
    except Exception:  # pragma: no cover
        tomllib = None  # type: ignore[assignment]
import types
from collections.abc import Sequence as ABCSequence
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from elasticsearch import Elasticsearch

from .log import PACKAGE_LOGGER_NAME, configure_logging
from .migrate import DEFAULT_MIGRATION_HEADERS, DEFAULT_MIGRATION_PATH, HttpMigrationTrigger
from .stages import DEFAULT_BATCH_SIZE, DEFAULT_INTERNAL_PREFIX

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class ElasticsearchConfig:
    """Connection settings for the destination cluster.

    ``api_key`` wins over ``username``/``password`` when both are set.
    """
    hosts: Tuple[str, ...] = ("http://localhost:9200",)
    api_key: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    verify_certs: bool = True
    ca_certs: Optional[str] = None
    request_timeout: float = 60.0

    def build_client(self) -> Elasticsearch:
        """Construct an ``elasticsearch.Elasticsearch`` client for this config."""
        kwargs: Dict[str, Any] = {
            "verify_certs": self.verify_certs,
            "request_timeout": self.request_timeout,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        elif self.username:
            kwargs["basic_auth"] = (self.username, self.password or "")
        if self.ca_certs:
            kwargs["ca_certs"] = self.ca_certs
        return Elasticsearch(list(self.hosts), **kwargs)


@dataclass(slots=True)
class LoadConfig:
    """Where archives live and how they are replayed."""
    data_dir: Path = Path("archives")
    skip_existing: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    internal_index_prefix: str = DEFAULT_INTERNAL_PREFIX
    max_frame_chars: Optional[int] = 64 * 1024 * 1024


@dataclass(slots=True)
class MigrationConfig:
    """Post-load migration trigger; disabled when ``base_url`` is unset."""
    enabled: bool = True
    base_url: Optional[str] = None
    path: str = DEFAULT_MIGRATION_PATH
    timeout: float = 60.0
    headers: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MIGRATION_HEADERS))

    def build_trigger(self) -> HttpMigrationTrigger | None:
        if not self.enabled or not self.base_url:
            return None
        return HttpMigrationTrigger(
            self.base_url,
            path=self.path,
            timeout=self.timeout,
            headers=self.headers,
        )


@dataclass(slots=True)
class LoggingConfig:
    """Controls the package logger; set propagate=True/logger_name to
    integrate with host apps.
    """
    level: int | str = "INFO"
    propagate: bool = False
    fmt: Optional[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logger_name: str = PACKAGE_LOGGER_NAME
    client_level: Optional[str] = None

    def apply(self) -> None:
        """Apply this logging configuration to the package logger."""
        configure_logging(
            level=self.level,
            propagate=self.propagate,
            fmt=self.fmt,
            logger_name=self.logger_name or PACKAGE_LOGGER_NAME,
            client_level=self.client_level,
        )


# ---------------------------------------------------------------------------
# Master config
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class ArchiverConfig:
    """Declarative settings for load, unload and save runs.

    Only serializable knobs live here; clients and triggers are built on
    demand by the ``build_*`` helpers of each section.
    """
    elasticsearch: ElasticsearchConfig = field(default_factory=ElasticsearchConfig)
    load: LoadConfig = field(default_factory=LoadConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Check the configuration for internal consistency.

        Raises:
            ValueError: If a value is out of range or missing.
        """
        if not self.elasticsearch.hosts:
            raise ValueError("elasticsearch.hosts must name at least one host.")
        if self.elasticsearch.password and not self.elasticsearch.username:
            raise ValueError("elasticsearch.password requires elasticsearch.username.")
        if int(self.load.batch_size) < 1:
            raise ValueError(f"load.batch_size must be >= 1; got {self.load.batch_size!r}.")
        if not self.load.internal_index_prefix:
            raise ValueError("load.internal_index_prefix must not be empty.")
        max_chars = self.load.max_frame_chars
        if max_chars is not None and int(max_chars) < 1:
            raise ValueError("load.max_frame_chars must be positive when set.")
        if self.migration.timeout <= 0:
            raise ValueError("migration.timeout must be positive.")

    # -------------------------
    # Serialization helpers
    # -------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation of this configuration."""
        return _dataclass_to_dict(self)

    def to_json(self, path: Path | str, *, indent: int = 2) -> str:
        """Serialize the configuration to JSON and write it to disk.

        Returns:
            str: String path to the written file.
        """
        target = Path(path)
        target.write_text(json.dumps(self.to_dict(), indent=indent, sort_keys=True), encoding="utf-8")
        return str(target)

    @classmethod
    def from_dict(cls: Type[T], data: Mapping[str, Any]) -> T:
        return _dataclass_from_dict(cls, data)

    @classmethod
    def from_json(cls: Type[T], path: Path | str) -> T:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_dict(payload)

    @classmethod
    def from_toml(cls: Type[T], path: Path | str) -> T:
        """
        Load an ArchiverConfig from a TOML file.

        The TOML layout mirrors the structure of this dataclass: top-level
        tables [elasticsearch], [load], [migration] and [logging].
        """
        if tomllib is None:
            raise RuntimeError(
                "TOML support requires Python 3.11+ (tomllib) or installing the 'tomli' package."
            )
        data = tomllib.loads(Path(path).read_bytes().decode("utf-8"))
        if not isinstance(data, Mapping):
            raise TypeError(f"Top-level TOML document must be a mapping; got {type(data).__name__}.")
        return cls.from_dict(data)


def load_config_from_path(path: str | Path) -> ArchiverConfig:
    """Load an ArchiverConfig from a JSON or TOML file.

    Raises:
        ValueError: If the file extension is not ``.toml`` or ``.json``.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".toml":
        return ArchiverConfig.from_toml(p)
    if suffix == ".json":
        return ArchiverConfig.from_json(p)
    raise ValueError(f"Unsupported config extension {p.suffix!r}; expected .toml or .json.")


_SKIP_FIELDS: Dict[Type[Any], set[str]] = {
    ElasticsearchConfig: {"api_key", "password"},
}


def _dataclass_to_dict(obj: Any) -> Dict[str, Any]:
    """Serialize dataclasses to JSON-friendly dicts, skipping None and secret fields."""
    result: Dict[str, Any] = {}
    skip = _SKIP_FIELDS.get(type(obj), set())
    for f in fields(obj):
        if f.name in skip:
            continue
        value = getattr(obj, f.name)
        if value is None:
            continue
        serialized = _serialize_value(value)
        if serialized is not None:
            result[f.name] = serialized
    return result


def _serialize_value(value: Any) -> Any:
    """Best-effort JSON-friendly coercion; drops values that cannot be serialized."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for k, v in value.items():
            serialized = _serialize_value(v)
            if serialized is not None:
                out[str(k)] = serialized
        return out
    if is_dataclass(value):
        return _dataclass_to_dict(value)
    return None


def _dataclass_from_dict(cls: Type[T], data: Mapping[str, Any] | None) -> T:
    """Instantiate a dataclass of type `cls` from a mapping.

    Unknown keys are rejected so typos in config files surface early.
    """
    if data is None:
        return cls()  # type: ignore[call-arg]
    if not isinstance(data, Mapping):
        raise TypeError(f"{cls.__name__} expects a mapping; got {type(data).__name__}.")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} option(s): {', '.join(unknown)}")
    type_hints = get_type_hints(cls)

    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        field_type = type_hints.get(f.name, f.type)
        kwargs[f.name] = _coerce_value(field_type, data[f.name])
    return cls(**kwargs)  # type: ignore[arg-type]


def _coerce_value(expected_type: Any, value: Any) -> Any:
    """Coerce `value` into the shape implied by `expected_type`."""
    base_type, _ = _strip_optional(expected_type)
    if value is None:
        return None
    if is_dataclass_type(base_type):
        return _dataclass_from_dict(base_type, value)
    origin = get_origin(base_type)
    if origin in (list, tuple, ABCSequence):
        if isinstance(value, str):
            value = [value]
        args = get_args(base_type)
        inner = args[0] if args else Any
        items = [_coerce_value(inner, v) for v in value]
        return tuple(items) if origin is tuple else list(items)
    if origin is dict:
        key_type, val_type = get_args(base_type) if get_args(base_type) else (Any, Any)
        return {_coerce_value(key_type, k): _coerce_value(val_type, v) for k, v in value.items()}
    if base_type is Path:
        return Path(value)
    if base_type in {str, int, float, bool}:
        return base_type(value)
    return value


def _strip_optional(typ: Any) -> Tuple[Any, bool]:
    """Strip Optional from a type annotation.

    Returns:
        tuple[Any, bool]: A pair ``(base_type, is_optional)`` where
        ``is_optional`` is True if ``None`` was present in the union.
    """
    origin = get_origin(typ)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(typ) if arg is not type(None)]
        if len(args) == 1:
            base, _ = _strip_optional(args[0])
            return base, True
    return typ, False


def is_dataclass_type(typ: Any) -> bool:
    """Return True if `typ` is a dataclass type (not an instance)."""
    try:
        return isinstance(typ, type) and is_dataclass(typ)
    except Exception:
        return False


__all__ = [
    "ElasticsearchConfig",
    "LoadConfig",
    "MigrationConfig",
    "LoggingConfig",
    "ArchiverConfig",
    "load_config_from_path",
]
