"""
Module: studio_engines.payments
Responsibility:
    Turn a balance audit into per-attendance payment amounts and roll them
    up per lesson across students: how much each lesson earned, and how
    many of its attendees were not covered by any pass.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes BalanceAuditResult; does not re-run the audit.

Invariants enforced:
    - Only lessons with an explicit attendance mark get a payment line;
      auto-consumed lessons are priced by the revenue engine instead.
    - A covered lesson is worth its pass's fixed rate
      ``price / lessons_total``; uncovered and not-counted lessons are 0.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from studio_engines.balance_audit import BalanceAuditResult
from studio_engines.coverage import capacity_of, per_lesson_rate
from studio_kernel.domain.values import Pass


@dataclass(frozen=True)
class AttendancePayment:
    lesson_id: str
    amount: Decimal
    is_uncovered: bool


@dataclass(frozen=True)
class LessonTotals:
    """Per-lesson totals across every student in the lesson."""

    lesson_id: str
    total_amount: Decimal
    uncovered_count: int


def attendance_payments(
    audit: BalanceAuditResult,
    passes: Iterable[Pass],
) -> dict[str, AttendancePayment]:
    """Payment line for every explicitly marked lesson in ``audit``."""
    by_id = {str(p.id): p for p in passes}
    payments: dict[str, AttendancePayment] = {}

    for entry in audit.audit_entries:
        if entry.attendance_status is None:
            continue
        amount = Decimal("0")
        if entry.is_counted and entry.covered_by_pass_id is not None:
            covering = by_id.get(entry.covered_by_pass_id)
            if covering is not None and capacity_of(covering) > 0:
                amount = per_lesson_rate(covering)
        payments[entry.lesson_id] = AttendancePayment(
            lesson_id=entry.lesson_id,
            amount=amount,
            is_uncovered=entry.is_uncovered,
        )
    return payments


def summarize_lesson_totals(
    payments_by_student: Mapping[str, Mapping[str, AttendancePayment]],
) -> dict[str, LessonTotals]:
    """Aggregate ``{student_id: {lesson_id: payment}}`` into per-lesson totals."""
    amounts: dict[str, Decimal] = {}
    uncovered: dict[str, int] = {}

    for payments in payments_by_student.values():
        for lesson_id, payment in payments.items():
            amounts[lesson_id] = amounts.get(lesson_id, Decimal("0")) + payment.amount
            uncovered[lesson_id] = uncovered.get(lesson_id, 0) + int(payment.is_uncovered)

    return {
        lesson_id: LessonTotals(
            lesson_id=lesson_id,
            total_amount=amounts[lesson_id],
            uncovered_count=uncovered[lesson_id],
        )
        for lesson_id in sorted(amounts)
    }
