"""
workshop_config -- single public entrypoint for kernel configuration.

``get_active_config()`` is the only way runtime code obtains settings.  The
kernel itself never imports this package; ``workshop_config.bridges`` turns
settings into the plain kernel objects (engine, LifecyclePolicy, retry
runner) that services are constructed with.

Every successful call emits a ``WORKSHOP_CONFIG_TRACE`` log entry carrying
the config id, version and checksum, so that a log stream shows which
settings governed the operations that follow.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from workshop_config.loader import load_yaml_file, parse_settings
from workshop_config.schema import ConfigError, KernelSettings

__all__ = ["ConfigError", "KernelSettings", "get_active_config", "DATABASE_URL_ENV"]

_logger = logging.getLogger("workshop_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

DATABASE_URL_ENV = "WORKSHOP_DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> KernelSettings:
    """
    Load, validate and return the active settings.

    Args:
        config_path: YAML settings file.  Defaults to the packaged
            ``sets/default.yaml``.

    The ``WORKSHOP_DATABASE_URL`` environment variable, when set, replaces
    ``database.url``.

    Raises:
        FileNotFoundError: the settings file does not exist.
        ConfigError: a value is missing or invalid.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_FILE
    data = load_yaml_file(path)
    settings = parse_settings(data, database_url_override=os.environ.get(DATABASE_URL_ENV))

    _logger.info(
        "WORKSHOP_CONFIG_TRACE",
        extra={
            "trace_type": "WORKSHOP_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source": str(path),
            "auto_issue_on_create": settings.lifecycle.auto_issue_on_create,
        },
    )
    return settings
