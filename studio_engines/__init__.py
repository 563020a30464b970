"""
Module: studio_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    ledger engines.  This is the canonical import surface for services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import studio_kernel.domain and studio_kernel.logging_config.
    MUST NOT import studio_services or studio_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      The reference day arrives as an explicit ``as_of`` parameter.
    - Decimal-only money arithmetic.
    - Determinism: identical inputs always produce identical outputs.
    - Totality: the balance and revenue engines never raise on bad data.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` and emits a
    STUDIO_ENGINE_TRACE log record with engine name, version, input
    fingerprint and duration.

Usage:
    from studio_engines import BalanceAuditEngine, RevenueAllocationEngine
"""

from studio_kernel.logging_config import get_logger

logger = get_logger("engines")

from studio_engines.balance_audit import (
    AuditReason,
    BalanceAuditEngine,
    BalanceAuditEntry,
    BalanceAuditResult,
    EntryStatus,
    PassUsage,
    StudentBalanceSummary,
    UncoveredLesson,
    summarize_student_balance,
)
from studio_engines.coverage import (
    CoverageWindow,
    can_cover,
    capacity_of,
    find_expired_passes,
    is_expired_as_of,
    per_lesson_rate,
    price_of,
    resolve_coverage_windows,
)
from studio_engines.payments import (
    AttendancePayment,
    LessonTotals,
    attendance_payments,
    summarize_lesson_totals,
)
from studio_engines.preview import (
    AttendancePreview,
    preview_attendance,
    with_provisional_mark,
)
from studio_engines.revenue import LessonRevenue, RevenueAllocationEngine
from studio_engines.scope import StudentGroupScope, build_scope
from studio_engines.tracer import traced_engine

__all__ = [
    # Balance audit
    "AuditReason",
    "BalanceAuditEngine",
    "BalanceAuditEntry",
    "BalanceAuditResult",
    "EntryStatus",
    "PassUsage",
    "StudentBalanceSummary",
    "UncoveredLesson",
    "summarize_student_balance",
    # Coverage
    "CoverageWindow",
    "can_cover",
    "capacity_of",
    "find_expired_passes",
    "is_expired_as_of",
    "per_lesson_rate",
    "price_of",
    "resolve_coverage_windows",
    # Payments
    "AttendancePayment",
    "LessonTotals",
    "attendance_payments",
    "summarize_lesson_totals",
    # Preview
    "AttendancePreview",
    "preview_attendance",
    "with_provisional_mark",
    # Revenue
    "LessonRevenue",
    "RevenueAllocationEngine",
    # Scope
    "StudentGroupScope",
    "build_scope",
    # Tracing
    "traced_engine",
]
