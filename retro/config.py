"""Application configuration loaded from a YAML file."""

import datetime as _dt
import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, get_args, get_origin

import yaml


class ConfigError(Exception):
    """Base class for configuration problems."""


class ConfigNotFoundError(ConfigError):
    """The configuration file does not exist."""


class ConfigReadError(ConfigError):
    """The configuration file could not be read."""


class ConfigParseError(ConfigError):
    """The configuration file is not valid YAML or has values of the wrong type."""


@dataclass
class DatabaseConfig:
    type: str = ""
    connection_string: str = ""
    pool_max_conns: str = ""


@dataclass
class TaskConfigEntry:
    name: str = ""
    network: str = ""
    enabled: bool = False
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class StateConfig:
    resume_enabled: bool = False


@dataclass
class ConcurrencyConfig:
    max_parallel_wallets: int = 0


@dataclass
class WalletsConfig:
    process_order: str = ""


@dataclass
class DelayRange:
    min: int = 0
    max: int = 0
    unit: str = ""


@dataclass
class RetryDelay:
    delay: DelayRange = field(default_factory=DelayRange)
    attempts: int = 0


@dataclass
class DelayConfig:
    between_accounts: DelayRange = field(default_factory=DelayRange)
    between_actions: DelayRange = field(default_factory=DelayRange)
    after_error: DelayRange = field(default_factory=DelayRange)
    between_retries: RetryDelay = field(default_factory=RetryDelay)


@dataclass
class MinMax:
    min: int = 0
    max: int = 0


@dataclass
class ActionsConfig:
    actions_per_account: MinMax = field(default_factory=MinMax)
    task_order: str = ""
    explicit_task_sequence: list[str] = field(default_factory=list)


@dataclass
class Config:
    log_file_path: str = ""
    rpc_nodes: dict[str, list[str]] = field(default_factory=dict)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    wallets: WalletsConfig = field(default_factory=WalletsConfig)
    delay: DelayConfig = field(default_factory=DelayConfig)
    actions: ActionsConfig = field(default_factory=ActionsConfig)
    tasks: list[TaskConfigEntry] = field(default_factory=list)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    state: StateConfig = field(default_factory=StateConfig)

    @classmethod
    def from_dict(cls, data):
        """Build a configuration from parsed YAML data; missing keys keep their defaults."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigParseError(
                f"top-level value must be a mapping, got {type(data).__name__}"
            )
        return _decode(data, cls, "")

    def validate(self):
        """Check that every field holds a value of its declared type."""
        problems = list(_check(self, type(self), ""))
        if problems:
            raise ConfigError("configuration validation failed: " + "; ".join(problems))


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _field_types(cls):
    return {f.name: f.type for f in fields(cls)}


def _zero(hint):
    if is_dataclass(hint):
        return hint()
    origin = get_origin(hint)
    if origin is list:
        return []
    if origin is dict:
        return {}
    if hint is Any:
        return None
    return hint()


def _decode(value, hint, path):
    if value is None:
        return _zero(hint)
    where = path or "config"
    if is_dataclass(hint):
        if not isinstance(value, Mapping):
            raise ConfigParseError(f"{where}: expected a mapping, got {type(value).__name__}")
        hints = _field_types(hint)
        return hint(
            **{
                name: _decode(value[name], item_hint, _join(path, name))
                for name, item_hint in hints.items()
                if name in value
            }
        )
    origin = get_origin(hint)
    if origin is list:
        if not isinstance(value, list):
            raise ConfigParseError(f"{where}: expected a list, got {type(value).__name__}")
        (item_hint,) = get_args(hint)
        return [_decode(item, item_hint, f"{where}[{i}]") for i, item in enumerate(value)]
    if origin is dict:
        if not isinstance(value, Mapping):
            raise ConfigParseError(f"{where}: expected a mapping, got {type(value).__name__}")
        _, item_hint = get_args(hint)
        return {
            _decode(key, str, where): _decode(item, item_hint, _join(path, str(key)))
            for key, item in value.items()
        }
    if hint is Any:
        return value
    if hint is bool:
        if isinstance(value, bool):
            return value
        raise ConfigParseError(f"{where}: expected a boolean, got {value!r}")
    if hint is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise ConfigParseError(f"{where}: expected an integer, got {value!r}")
    if hint is str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (str, int, float, _dt.date)):
            return str(value)
        raise ConfigParseError(f"{where}: expected a string, got {type(value).__name__}")
    raise ConfigParseError(f"{where}: unsupported type {hint!r}")


def _check(value, hint, path) -> Iterator[str]:
    where = path or "config"
    if is_dataclass(hint):
        if not isinstance(value, hint):
            yield f"{where}: expected {hint.__name__}"
            return
        for name, item_hint in _field_types(hint).items():
            yield from _check(getattr(value, name), item_hint, _join(path, name))
        return
    origin = get_origin(hint)
    if origin is list:
        if not isinstance(value, list):
            yield f"{where}: expected a list"
            return
        (item_hint,) = get_args(hint)
        for i, item in enumerate(value):
            yield from _check(item, item_hint, f"{where}[{i}]")
    elif origin is dict:
        if not isinstance(value, dict):
            yield f"{where}: expected a mapping"
            return
        _, item_hint = get_args(hint)
        for key, item in value.items():
            if not isinstance(key, str):
                yield f"{where}: key {key!r} is not a string"
            yield from _check(item, item_hint, _join(path, str(key)))
    elif hint is Any:
        return
    elif hint is int:
        if not isinstance(value, int) or isinstance(value, bool):
            yield f"{where}: expected an integer"
    elif not isinstance(value, hint):
        yield f"{where}: expected {hint.__name__}"


def load_config(path):
    """Read, parse and validate the configuration, then apply DB_* environment overrides."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError as exc:
        raise ConfigNotFoundError(f"config file not found: {path}") from exc
    except OSError as exc:
        raise ConfigReadError(f"failed to read config file {path}: {exc}") from exc

    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"failed to parse config file (invalid YAML): {exc}") from exc

    cfg = Config.from_dict(raw)
    cfg.validate()

    if db_type := os.environ.get("DB_TYPE"):
        cfg.database.type = db_type
    if conn_str := os.environ.get("DB_CONNECTION_STRING"):
        cfg.database.connection_string = conn_str
    if pool_max := os.environ.get("DB_POOL_MAX_CONNS"):
        cfg.database.pool_max_conns = pool_max
    return cfg