"""
Module: ledger_kernel.logging_config
Responsibility: One JSON object per log record for everything under the
    ``ledger_kernel`` logger namespace, plus request-scoped context fields
    (organization, actor, correlation) that ride along on every record.
Architecture position: Kernel, no dependencies.  Every other package logs
    through ``get_logger()``; ``ledger_config.apply_settings`` and the test
    harness call ``configure_logging()``.

Invariants enforced:
    - The envelope keys ``ts``, ``level``, ``logger``, ``message`` are always
      present and never overwritten by context or ``extra`` fields.
    - Context fields are stored as strings (UUIDs are accepted).
    - configure_logging() attaches exactly one handler no matter how often
      it is called; reset_logging() undoes it.

Audit relevance:
    Ledger errors logged with ``exc_info`` carry their machine-readable
    ``code`` and structured attributes (``exc_period_name``, ...), so a
    rejected posting can be traced without parsing messages.
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

_NAMESPACE = "ledger_kernel"

_CONTEXT_FIELDS = frozenset({
    "correlation_id",
    "actor_id",
    "organization_id",
    "entity_id",
    "trace_id",
})

_context: ContextVar[dict[str, str]] = ContextVar("ledger_log_context", default={})


class LogContext:
    """
    Request-scoped fields added to every record.

    Backed by a single ContextVar holding an immutable snapshot, so values
    set in one thread or task never leak into another.
    """

    FIELDS = _CONTEXT_FIELDS

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set known fields; None values and unknown names are ignored."""
        _context.set({**_context.get(), **_accepted(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = _context.set({**_context.get(), **_accepted(fields)})
        try:
            yield cls
        finally:
            _context.reset(token)


def _accepted(fields: dict[str, Any]) -> dict[str, str]:
    return {
        name: str(value)
        for name, value in fields.items()
        if value is not None and name in _CONTEXT_FIELDS
    }


# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Render a record as a single line of JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name, value in _context.get().items():
            payload.setdefault(name, value)
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRIBUTES:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``ledger_kernel.<name>``."""
    return logging.getLogger(f"{_NAMESPACE}.{name}")


_handler: logging.Handler | None = None
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``ledger_kernel`` logger (first call wins)."""
    global _handler
    with _lock:
        if _handler is not None:
            return
        _handler = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(StructuredFormatter())

        root = logging.getLogger(_NAMESPACE)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_handler)


def reset_logging() -> None:
    """Detach the handler installed by configure_logging(). For tests."""
    global _handler
    with _lock:
        root = logging.getLogger(_NAMESPACE)
        if _handler is not None:
            root.removeHandler(_handler)
            _handler = None
        root.setLevel(logging.WARNING)
