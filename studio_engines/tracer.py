"""
studio_engines.tracer -- STUDIO_ENGINE_TRACE for ledger engine calls.

Responsibility:
    ``@traced_engine`` wraps an engine method and logs one trace record per
    call: engine name and version, a fingerprint of the ledger snapshot the
    call received, the number of records in each collection, and duration_ms.
    Two audits with the same fingerprint saw the same passes, lessons and
    attendance marks, so a disputed balance can be matched to the trace that
    produced it.

Architecture position:
    Engines -- support for the pure calculation layer.  Emits a log record
    and does nothing else.

Invariants enforced:
    - Records are reduced to the fields the ledger reads (``_record_key``):
      a pass by capacity, price, window and status; a lesson by day, slot
      and status; a mark by lesson, student and status.
    - Passes and lessons are fingerprinted as sets, since the engines sort
      them.  Marks keep their order because the last mark for a lesson wins.
    - Collections passed for fingerprinted fields are materialized once,
      and the engine receives that tuple, so a generator is never consumed
      before the engine sees it.
    - The digest is SHA-256 truncated to 16 hex chars.

Usage:
    from studio_engines.tracer import LEDGER_INPUTS, traced_engine

    @traced_engine("balance_audit", "2.0", fingerprint_fields=LEDGER_INPUTS)
    def audit(self, *, student_id, group_id, passes, attendance, lessons, as_of):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from typing import Any

from studio_kernel.domain.values import AttendanceMark, Lesson, Pass

_logger = logging.getLogger("studio_kernel.engines.tracer")

# Keyword arguments shared by the balance and revenue engines
LEDGER_INPUTS: tuple[str, ...] = (
    "student_id",
    "group_id",
    "passes",
    "lessons",
    "attendance",
    "as_of",
)


def _status(record: Any) -> str:
    return str(getattr(record.status, "value", record.status))


def _record_key(value: Any) -> str | None:
    if isinstance(value, Pass):
        return (
            f"pass:{value.id}:{value.student_id}:{value.group_id}:{value.purchase_date}"
            f":{value.expiry_date}:{value.lessons_total}:{value.price}"
            f":{int(bool(value.is_consecutive))}:{_status(value)}"
        )
    if isinstance(value, Lesson):
        return f"lesson:{value.id}:{value.group_id}:{value.date}:{value.time}:{_status(value)}"
    if isinstance(value, AttendanceMark):
        return f"mark:{value.lesson_id}:{value.student_id}:{_status(value)}"
    return None


def _canonicalize(value: Any) -> str:
    """Stable text for one fingerprinted argument."""
    if value is None:
        return "null"
    key = _record_key(value)
    if key is not None:
        return key
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        items = sorted((str(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        parts = [_canonicalize(v) for v in value]
        if all(isinstance(v, (Pass, Lesson)) for v in value):
            parts.sort()
        return "[" + ",".join(parts) + "]"
    return str(value)


def _is_collection(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping))


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """SHA-256 prefix over the named keyword arguments; absent ones count as None."""
    canonical = "|".join(
        f"{field}={_canonicalize(kwargs.get(field))}" for field in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits STUDIO_ENGINE_TRACE for each engine call.

    Args:
        engine_name: Engine identifier (e.g., "balance_audit").
        engine_version: Engine version (e.g., "2.0").
        fingerprint_fields: Keyword argument names covered by the
            fingerprint.  Collections among them are also counted.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            input_counts: dict[str, int] = {}
            for field in fingerprint_fields:
                if _is_collection(kwargs.get(field)):
                    kwargs[field] = tuple(kwargs[field])
                    input_counts[field] = len(kwargs[field])
            fp = compute_input_fingerprint(fingerprint_fields, kwargs) if fingerprint_fields else ""

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.info(
                "STUDIO_ENGINE_TRACE",
                extra={
                    "trace_type": "STUDIO_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "input_counts": input_counts,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
