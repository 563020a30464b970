"""
Module: studio_engines.revenue
Responsibility:
    Put a monetary value on each lesson of one student in one group by
    spreading the price of each pass over the lessons it covers.

    - Consecutive pass: flat ``price / lessons_total`` per covered lesson.
    - Non-consecutive pass: attended lessons earn the fixed rate; the rest
      of the pass value is split evenly across the unattended lessons
      (invalid skips and unmarked lessons) inside its window.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Sibling of studio_engines.balance_audit; shares scope and coverage.

Invariants enforced:
    - Capacity-tracked: a pass prices at most ``lessons_total`` lessons.
    - Valid skips cost 0 and consume nothing.
    - Conservation: when a non-consecutive pass is fully consumed without
      valid skips, the costs of its lessons sum to its price.
    - Purity: ``as_of`` is injected; output is recomputed from scratch on
      every call.

Failure modes:
    None.  Divisions fall back to a divisor of 1; bad prices count as 0.

Audit relevance:
    Each priced lesson carries the equation that produced its cost
    ("280 / 8", "(320 - 120) / 1"), so a report can show its arithmetic.
    Output is advisory and never gates attendance marking.

Usage:
    from studio_engines.revenue import RevenueAllocationEngine

    revenue = RevenueAllocationEngine().allocate(
        student_id="stu-1",
        group_id="grp-1",
        passes=passes,
        lessons=lessons,
        attendance=marks,
        as_of=date(2025, 3, 1),
    )
    revenue["lesson-7"].cost      # Decimal("35")
    revenue["lesson-7"].equation  # "280 / 8"
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from studio_engines.coverage import (
    CoverageWindow,
    can_cover,
    capacity_of,
    format_amount,
    format_whole,
    per_lesson_rate,
    price_of,
    resolve_coverage_windows,
)
from studio_engines.scope import StudentGroupScope, build_scope
from studio_engines.tracer import LEDGER_INPUTS, traced_engine
from studio_kernel.domain.policy import DEFAULT_LEDGER_POLICY, LedgerPolicy
from studio_kernel.domain.values import (
    AttendanceMark,
    AttendanceStatus,
    Lesson,
    Pass,
)
from studio_kernel.logging_config import get_logger

logger = get_logger("engines.revenue")

VALID_SKIP_EQUATION = "0 (Valid Skip)"


@dataclass(frozen=True)
class LessonRevenue:
    """Value assigned to one lesson."""

    cost: Decimal
    equation: str
    used_pass_id: str | None = None
    is_estimated: bool = False  # Lesson is after the reference day


@dataclass
class _WindowUsage:
    attended: int = 0
    unattended: int = 0


class RevenueAllocationEngine:
    """
    Allocate pass revenue to lessons.

    Contract:
        Pure function of its inputs and ``as_of``.  No I/O, no clock.
    Guarantees:
        - Non-consecutive windows are tried before consecutive passes.
        - Within each kind, passes are tried in purchase-date order.
        - Cancelled lessons and lessons no pass covers are absent from
          the result.
    Non-goals:
        - Does not compute balances or debt; see BalanceAuditEngine.
        - Does not round costs; presentation decides the display precision.
    """

    def __init__(self, policy: LedgerPolicy | None = None):
        self.policy = policy or DEFAULT_LEDGER_POLICY

    @traced_engine("revenue_allocation", "2.0", fingerprint_fields=LEDGER_INPUTS)
    def allocate(
        self,
        *,
        student_id: str,
        group_id: str,
        passes: Iterable[Pass],
        lessons: Iterable[Lesson],
        attendance: Iterable[AttendanceMark],
        as_of: date,
    ) -> dict[str, LessonRevenue]:
        """
        Price every covered lesson.

        Args:
            student_id: Student whose lessons are priced.
            group_id: Group the allocation is scoped to.
            passes: Any passes; foreign ones are ignored.
            lessons: Any lessons; other groups are ignored.
            attendance: Any marks, possibly including provisional ones.
            as_of: Reference day ("today").

        Returns:
            Mapping of lesson id to LessonRevenue, in lesson order.
        """
        t0 = time.monotonic()
        scope = build_scope(student_id, group_id, passes, lessons, attendance)
        logger.info("revenue_allocation_started", extra={
            "student_id": scope.student_id,
            "group_id": scope.group_id,
            "as_of": as_of,
            "pass_count": len(scope.passes),
            "lesson_count": len(scope.lessons),
        })

        windows = resolve_coverage_windows(scope.passes, self.policy.open_window_end)
        flexible = [p for p in scope.passes if not p.is_consecutive]
        consecutive = [p for p in scope.passes if p.is_consecutive]

        stats = self._window_stats(scope, flexible, windows, as_of)

        remaining = {str(p.id): capacity_of(p) for p in scope.passes}
        revenue: dict[str, LessonRevenue] = {}

        for lesson in scope.lessons:
            if lesson.is_cancelled:
                continue

            covered_by = _first_with_capacity(flexible, windows, remaining, lesson, as_of)
            if covered_by is None:
                covered_by = _first_with_capacity(consecutive, windows, remaining, lesson, as_of)
            if covered_by is None:
                continue

            mark = scope.mark_for(lesson)
            status = mark.status if mark is not None else None

            if status == AttendanceStatus.ABSENCE_VALID:
                cost, equation = Decimal("0"), VALID_SKIP_EQUATION
            elif covered_by.is_consecutive:
                cost, equation = _flat_cost(covered_by)
            elif status == AttendanceStatus.PRESENT:
                cost, equation = _flat_cost(covered_by)
            else:
                cost, equation = _remainder_cost(covered_by, stats.get(str(covered_by.id)))

            if status != AttendanceStatus.ABSENCE_VALID:
                remaining[str(covered_by.id)] -= 1

            revenue[str(lesson.id)] = LessonRevenue(
                cost=cost,
                equation=equation,
                used_pass_id=str(covered_by.id),
                is_estimated=lesson.date > as_of,
            )

        logger.info("revenue_allocation_completed", extra={
            "student_id": scope.student_id,
            "group_id": scope.group_id,
            "priced_lessons": len(revenue),
            "total_cost": sum((r.cost for r in revenue.values()), Decimal("0")),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return revenue

    def _window_stats(
        self,
        scope: StudentGroupScope,
        flexible: list[Pass],
        windows: Mapping[str, CoverageWindow],
        as_of: date,
    ) -> dict[str, _WindowUsage]:
        """First traversal: attended/unattended counts per non-consecutive pass."""
        remaining = {str(p.id): capacity_of(p) for p in flexible}
        stats: dict[str, _WindowUsage] = {}

        for lesson in scope.lessons:
            if lesson.is_cancelled:
                continue
            for p in flexible:
                pass_id = str(p.id)
                if not windows[pass_id].covers(lesson.date):
                    continue
                if not can_cover(p, lesson.date, as_of):
                    continue
                if remaining[pass_id] <= 0:
                    continue

                usage = stats.setdefault(pass_id, _WindowUsage())
                mark = scope.mark_for(lesson)
                status = mark.status if mark is not None else None
                if status != AttendanceStatus.ABSENCE_VALID:
                    if status == AttendanceStatus.PRESENT:
                        usage.attended += 1
                    else:
                        usage.unattended += 1
                    remaining[pass_id] -= 1
                break

        return stats


def _first_with_capacity(
    candidates: list[Pass],
    windows: Mapping[str, CoverageWindow],
    remaining: Mapping[str, int],
    lesson: Lesson,
    as_of: date,
) -> Pass | None:
    for p in candidates:
        pass_id = str(p.id)
        if (
            windows[pass_id].covers(lesson.date)
            and can_cover(p, lesson.date, as_of)
            and remaining[pass_id] > 0
        ):
            return p
    return None


def _flat_cost(pass_: Pass) -> tuple[Decimal, str]:
    divisor = capacity_of(pass_) or 1
    return per_lesson_rate(pass_), f"{format_amount(price_of(pass_))} / {divisor}"


def _remainder_cost(pass_: Pass, usage: _WindowUsage | None) -> tuple[Decimal, str]:
    """Pass value left after attended lessons, split across unattended ones."""
    usage = usage or _WindowUsage(attended=0, unattended=1)
    price = price_of(pass_)
    used = usage.attended * per_lesson_rate(pass_)
    left = max(Decimal("0"), price - used)
    count = usage.unattended or 1
    return (
        left / count,
        f"({format_amount(price)} - {format_whole(used)}) / {count}",
    )
