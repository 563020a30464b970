"""
Pure domain layer.

Immutable records and policies with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the Clock abstraction itself)
- I/O
"""

from studio_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from studio_kernel.domain.policy import DEFAULT_LEDGER_POLICY, LedgerPolicy
from studio_kernel.domain.values import (
    AttendanceMark,
    AttendanceStatus,
    Lesson,
    LessonStatus,
    Pass,
    PassStatus,
    lesson_sort_key,
    parse_day,
    pass_sort_key,
    to_decimal,
)

__all__ = [
    # Records
    "AttendanceMark",
    "AttendanceStatus",
    "Lesson",
    "LessonStatus",
    "Pass",
    "PassStatus",
    # Ordering / parsing
    "lesson_sort_key",
    "pass_sort_key",
    "parse_day",
    "to_decimal",
    # Policy
    "DEFAULT_LEDGER_POLICY",
    "LedgerPolicy",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
]
