"""
Structured JSON logging for the shop kernel.

Every record under the ``shop_kernel`` logger is written as one JSON line.
Keys passed through ``extra=`` become top-level fields.  The order, actor
and entry a service is working on are attached with ``LogContext.bind``
so that ledger and engine records emitted underneath carry them too.

Values common in shop payloads are rendered as text: Decimal quantities
keep their scale (``"2.50"``), enums log their wire value, UUIDs and dates
their canonical string form.  Shop kernel errors attached via
``exc_info`` contribute their ``code`` and public attributes.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "shop_kernel"

CONTEXT_FIELDS = ("order_id", "entry_id", "actor_id")

_context: ContextVar[Mapping[str, str]] = ContextVar("shop_log_context", default={})


class LogContext:
    """Order, entry and actor ids attached to every record in scope."""

    @staticmethod
    @contextmanager
    def bind(**fields: UUID | str | None) -> Iterator[None]:
        """
        Attach context fields for the duration of the block.

        None values are skipped; the previous context is restored on exit.

        Raises:
            TypeError: a field outside CONTEXT_FIELDS.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"unknown log context field(s): {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(merged)
        try:
            yield
        finally:
            _context.reset(token)

    @staticmethod
    def current() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})


# Attributes every LogRecord carries; anything else arrived through extra=.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _render(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _error_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["error_code"] = code
        # Kernel errors keep their identifying fields (key, field, order_id...)
        # as plain attributes.
        detail = {k: v for k, v in vars(exc).items() if not k.startswith("_")}
        if detail:
            fields["error_detail"] = detail
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message, then fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        )
        # An explicit extra wins over the bound context unless it is None.
        for key, value in _context.get().items():
            if payload.get(key) is None:
                payload[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_render)


def get_logger(name: str) -> logging.Logger:
    """Logger for a kernel component, e.g. ``get_logger("services.ledger")``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *, level: int = logging.INFO, handler: logging.Handler | None = None
) -> None:
    """
    Install the JSON handler on the ``shop_kernel`` logger.

    Only the first call takes effect until ``reset_logging``.  Without a
    handler, records go to stderr.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True
        root = logging.getLogger(_LOGGER_PREFIX)
        root.setLevel(level)
        root.propagate = False
        target = handler if handler is not None else logging.StreamHandler(sys.stderr)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)


def reset_logging() -> None:
    """Remove installed handlers so the next configure_logging applies."""
    global _configured
    with _lock:
        _configured = False
        root = logging.getLogger(_LOGGER_PREFIX)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
