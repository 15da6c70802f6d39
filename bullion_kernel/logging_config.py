"""
Structured JSON logging for the bullion kernel.

Every record is one JSON object.  Posting context (correlation id, actor,
operation, source kind and id, voucher number) is carried in ContextVars
and merged into each record, so a log line written deep inside the
balance projector still names the document being posted.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "operation",
    "source_kind",
    "source_id",
    "voucher_number",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"bullion_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise ValueError(f"Unknown log context field: {name}") from None


class LogContext:
    """Posting-scoped log fields, safe across threads and tasks."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set context fields.  None values leave the field untouched."""
        for name, value in fields.items():
            if value is not None:
                _var(name).set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a block, then restore them."""
        tokens = [
            (_var(name), _var(name).set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield LogContext
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # BullionKernelError keeps its context as public attributes
    for key, value in vars(exc).items():
        if not key.startswith("_") and key != "code":
            fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


ROOT_LOGGER = "bullion_kernel"


def get_logger(name: str) -> logging.Logger:
    """Logger under the bullion_kernel namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_installed: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the bullion_kernel logger.

    Only the first call has any effect.  ``level`` accepts a number or a
    level name such as the ``logging.level`` setting.
    """
    global _installed
    with _lock:
        if _installed is not None:
            return
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        _installed = handler

    if isinstance(level, str):
        level = level.upper()
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)


def reset_logging() -> None:
    """Detach the handler configure_logging attached (tests only)."""
    global _installed
    with _lock:
        installed, _installed = _installed, None
    root = logging.getLogger(ROOT_LOGGER)
    if installed is not None:
        root.removeHandler(installed)
    root.setLevel(logging.WARNING)
