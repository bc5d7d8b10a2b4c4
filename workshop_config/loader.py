"""
Configuration Loader (``workshop_config.loader``).

Loads a YAML settings file and parses it into ``workshop_config.schema``
dataclasses.  Runtime callers go through ``workshop_config.get_active_config()``
instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or mistyped values  -> ``ConfigError`` naming the dotted key.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from workshop_config.schema import (
    ConfigError,
    DatabaseSettings,
    KernelSettings,
    LifecycleSettings,
    LoggingSettings,
    RetrySettings,
)

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError("<root>", f"expected a mapping, got {type(data).__name__}")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(name, "expected a mapping")
    return section


def _key(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _bool(section: dict[str, Any], key: str, prefix: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(_key(prefix, key), f"expected true/false, got {value!r}")
    return value


def _int(section: dict[str, Any], key: str, prefix: str, default: int, minimum: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(_key(prefix, key), f"expected an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(_key(prefix, key), f"must be >= {minimum}, got {value}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    url = data.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ConfigError("database.url", "a non-empty URL is required")
    return DatabaseSettings(
        url=url,
        echo=_bool(data, "echo", "database", False),
        pool_size=_int(data, "pool_size", "database", 20, 1),
        max_overflow=_int(data, "max_overflow", "database", 10, 0),
        pool_timeout=_int(data, "pool_timeout", "database", 30, 1),
    )


def parse_lifecycle(data: dict[str, Any]) -> LifecycleSettings:
    return LifecycleSettings(
        auto_issue_on_create=_bool(data, "auto_issue_on_create", "lifecycle", False),
        require_part_for_quantity=_bool(data, "require_part_for_quantity", "lifecycle", True),
    )


def parse_retry(data: dict[str, Any]) -> RetrySettings:
    backoff = data.get("backoff_seconds", 0.05)
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)) or backoff < 0:
        raise ConfigError("retry.backoff_seconds", f"expected a non-negative number, got {backoff!r}")
    return RetrySettings(
        max_attempts=_int(data, "max_attempts", "retry", 3, 1),
        backoff_seconds=float(backoff),
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError("logging.level", f"unknown level {level!r}")
    return LoggingSettings(level=level)


def parse_settings(data: dict[str, Any], database_url_override: str | None = None) -> KernelSettings:
    """
    Parse a settings mapping into ``KernelSettings``.

    ``database_url_override`` replaces ``database.url`` before validation.
    The checksum covers the mapping as parsed, override included.
    """
    database = dict(_section(data, "database"))
    if database_url_override:
        database["url"] = database_url_override

    effective = {**data, "database": database}

    return KernelSettings(
        config_id=str(data.get("config_id", "default")),
        version=_int(data, "version", "", 1, 1),
        database=parse_database(database),
        lifecycle=parse_lifecycle(_section(data, "lifecycle")),
        retry=parse_retry(_section(data, "retry")),
        logging=parse_logging(_section(data, "logging")),
        checksum=compute_checksum(effective),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
