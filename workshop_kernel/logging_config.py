"""
Structured JSON logging for the workshop kernel.

Every record leaves as one JSON object per line: the event name as
``message``, the ``extra=`` fields, and whatever request context is bound
through ``LogContext`` (who is acting, on which work order, in which
workshop).  Kernel code only calls ``get_logger(__name__-ish)``; the
application calls ``configure_logging()`` once at startup.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

LOGGER_NAMESPACE = "workshop_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "work_order_id",
    "workshop_id",
    "trace_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("workshop_log_context", default=_EMPTY)


def _known(fields: dict[str, Any]) -> dict[str, str]:
    return {
        name: str(value)
        for name, value in fields.items()
        if name in CONTEXT_FIELDS and value is not None
    }


class LogContext:
    """
    Request-scoped fields merged into every log record.

    Backed by a single ContextVar holding a read-only mapping, so each
    thread and each asyncio task sees its own values.  Unknown field names
    and None values are ignored; everything else is stored as ``str``.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        """Update the given fields, keeping the rest."""
        update = _known(fields)
        if update:
            _context.set(MappingProxyType({**_context.get(), **update}))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    def bind(**fields: Any) -> "_Binding":
        """
        Context manager: add fields for the duration of a block.

        Usage::

            with LogContext.bind(work_order_id=order.id):
                logger.info("work_order_approved")
        """
        return _Binding(_known(fields))


class _Binding:
    def __init__(self, fields: dict[str, str]):
        self._fields = fields
        self._token = None

    def __enter__(self) -> type[LogContext]:
        if self._fields:
            self._token = _context.set(MappingProxyType({**_context.get(), **self._fields}))
        return LogContext

    def __exit__(self, *exc_info: Any) -> None:
        if self._token is not None:
            _context.reset(self._token)
            self._token = None


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

# Attributes every LogRecord has; anything else came in through ``extra=``
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, datetime, date)):
        return str(obj) if isinstance(obj, UUID) else obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(str(v) for v in obj)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # kernel errors keep their data as public attributes
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED and key not in entry
        )
        if record.exc_info and record.exc_info[1] is not None:
            entry.update(_exception_fields(record.exc_info[1]))
            entry["traceback"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger ``workshop_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_setup_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``workshop_kernel`` logger.

    Only the first call has an effect until reset_logging().  ``level``
    accepts a logging constant or a level name in any case.
    """
    global _installed_handler
    with _setup_lock:
        if _installed_handler is not None:
            return
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())

        _installed_handler = handler or logging.StreamHandler(stream or sys.stderr)
        _installed_handler.setFormatter(StructuredFormatter())

        kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
        kernel_logger.setLevel(level)
        kernel_logger.propagate = False
        kernel_logger.addHandler(_installed_handler)


def reset_logging() -> None:
    """Undo configure_logging().  Tests only."""
    global _installed_handler
    with _setup_lock:
        kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
        kernel_logger.handlers.clear()
        kernel_logger.setLevel(logging.WARNING)
        kernel_logger.propagate = True
        _installed_handler = None
