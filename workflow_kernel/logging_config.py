"""
Structured JSON logging for the workflow kernel.

Every record under the ``workflow_kernel`` logger is written as one JSON
object per line.  Request-scoped identifiers (correlation id, actor and the
workflow/step/task being worked on) are carried in a ContextVar and merged
into each record, so a single decision's log lines can be grepped together.
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
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

ROOT_LOGGER_NAME = "workflow_kernel"

_EMPTY: Mapping[str, str] = MappingProxyType({})
_current_context: ContextVar[Mapping[str, str]] = ContextVar("workflow_log_context", default=_EMPTY)


class LogContext:
    """
    Request-scoped fields attached to every log record.

    Values are stringified on entry.  ``None`` leaves a field untouched.
    The context is a ContextVar, so threads and asyncio tasks each see
    their own copy.
    """

    FIELD_NAMES = (
        "correlation_id",
        "actor_id",
        "workflow_instance_id",
        "step_instance_id",
        "task_id",
        "work_item_id",
        "trace_id",
    )

    @classmethod
    def _merged(cls, fields: Mapping[str, Any]) -> Mapping[str, str]:
        updated = dict(_current_context.get())
        for name, value in fields.items():
            if name not in cls.FIELD_NAMES:
                raise KeyError(f"Unknown log context field: {name}")
            if value is not None:
                updated[name] = str(value)
        return MappingProxyType(updated)

    @classmethod
    def set(cls, **fields: Any) -> None:
        _current_context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_current_context.get())

    @classmethod
    def clear(cls) -> None:
        _current_context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Overlay ``fields`` for the duration of a ``with`` block."""
        token = _current_context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _current_context.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """Type, message, error code and public attributes of ``exc``."""
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for attr, value in vars(exc).items():
        if attr != "code" and not attr.startswith("_"):
            fields[f"exc_{attr}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base fields, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        extras = {k: v for k, v in vars(record).items() if k not in _RESERVED}
        for key, value in extras.items():
            entry.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            entry.update(_exception_fields(record.exc_info[1]))
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Child of the ``workflow_kernel`` logger, e.g. ``services.workflow``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_setup_lock = threading.Lock()
_handler_installed = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``workflow_kernel`` logger.

    Only the first call has an effect; later calls return without touching
    the handler or level.  The logger does not propagate to the root logger.
    """
    global _handler_installed
    with _setup_lock:
        if _handler_installed:
            return
        _handler_installed = True

        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(target)


def reset_logging() -> None:
    """Drop the installed handler so tests can configure again."""
    global _handler_installed
    with _setup_lock:
        _handler_installed = False
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
