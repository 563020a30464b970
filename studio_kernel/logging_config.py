"""
Module: studio_kernel.logging_config
Responsibility: One JSON object per log line for everything under the
    ``studio_kernel`` logger, with the ledger subject (student, group,
    lesson, pass) a record concerns attached automatically.
Architecture position: Kernel.  Imported by every layer for ``get_logger``;
    imports nothing from the studio packages.

Invariants enforced:
    - Context fields are a closed set (CONTEXT_FIELDS); binding any other
      name is a TypeError, so a misspelt field never vanishes silently.
    - Bound values are stored as strings; UUID row ids and str engine ids
      of the same record log identically.
    - configure_logging attaches exactly one studio handler however often
      it runs; later calls only change the level.  Handlers added by others
      (test capture, application roots) are never touched.

Audit relevance:
    A balance dispute is replayed from the log: engine traces and service
    events for one student share the same student_id/group_id fields.
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

_LOGGER_PREFIX = "studio_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "student_id",
    "group_id",
    "lesson_id",
    "pass_id",
)

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"studio_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _context[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name!r}") from None


# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------


class LogContext:
    """Ledger subject of the current task or thread, merged into every record."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Set the given fields; None leaves a field unchanged."""
        for name, value in fields.items():
            var = _context_var(name)
            if value is not None:
                var.set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name, var in _context.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set fields for the duration of a block, then restore them."""
        tokens = [
            (var, var.set(str(value)))
            for var, value in ((_context_var(name), value) for name, value in fields.items())
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    """Ledger values in log payloads: days, money, ids and statuses."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Formats each record as a single JSON line."""

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

        return json.dumps(payload, default=_json_default)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    # StudioKernelError subclasses carry a code plus the ids they refer to
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for key, value in vars(exc).items():
        if not key.startswith("_") and key != "args":
            fields[f"exc_{key}"] = value
    return fields


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the studio_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _studio_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, "studio_handler", False)]


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Send studio_kernel records to ``handler`` (default: a stderr stream).

    ``level`` accepts a number or a level name in any case, as read from
    the studio config.  Safe to call repeatedly.
    """
    if isinstance(level, str):
        level = level.upper()

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    if _studio_handlers(root):
        return

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    h.studio_handler = True
    root.addHandler(h)
    root.propagate = False


def reset_logging() -> None:
    """Detach the studio handler and restore the logger defaults. Tests only."""
    root = logging.getLogger(_LOGGER_PREFIX)
    for h in _studio_handlers(root):
        root.removeHandler(h)
    root.setLevel(logging.NOTSET)
    root.propagate = True
