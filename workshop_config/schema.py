"""
Kernel settings schema.

The YAML set is parsed into these frozen dataclasses by ``loader``; callers
only ever see a ``KernelSettings`` returned by ``get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass


class ConfigError(ValueError):
    """A configuration value is missing, mistyped or out of range."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Invalid configuration '{key}': {message}")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class LifecycleSettings:
    auto_issue_on_create: bool = False
    require_part_for_quantity: bool = True


@dataclass(frozen=True)
class RetrySettings:
    max_attempts: int = 3
    backoff_seconds: float = 0.05


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelSettings:
    """Everything the workshop kernel can be configured with."""

    config_id: str
    version: int
    database: DatabaseSettings
    lifecycle: LifecycleSettings = LifecycleSettings()
    retry: RetrySettings = RetrySettings()
    logging: LoggingSettings = LoggingSettings()
    checksum: str = ""
