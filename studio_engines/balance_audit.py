"""
Module: studio_engines.balance_audit
Responsibility:
    Walk one student's lesson history in one group against the passes they
    bought and produce a signed lesson balance, a reason-coded disposition
    for every lesson that matters, and a usage ledger per pass.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import studio_kernel.domain and sibling engine modules.

Invariants enforced:
    - Determinism: identical inputs (including ``as_of``) always produce an
      identical result.  The reference day is injected, never read.
    - Capacity: a pass is charged only while its remaining capacity is
      positive, so ``lessons_used <= lessons_total`` for every pass.
    - Valid skips (``absence_valid``) never consume capacity.
    - Allocation order: passes are tried in ascending purchase-date order
      and the first pass with a covering window and free capacity wins.
    - Non-consecutive passes never let an invalid skip burn a credit, and
      never absorb an auto-consumed (unmarked) lesson.
    - Balance = capacity of active-or-used passes - counted lessons.

Failure modes:
    None.  The audit is a total function: foreign records are filtered
    out, missing ``lessons_total`` counts as zero capacity.

Audit relevance:
    Every lesson that affects (or visibly does not affect) the balance
    gets a BalanceAuditEntry with an AuditReason, so a teacher can answer
    "why does this student owe 2 lessons?" line by line.

Usage:
    from studio_engines.balance_audit import BalanceAuditEngine

    engine = BalanceAuditEngine()
    result = engine.audit(
        student_id="stu-1",
        group_id="grp-1",
        passes=passes,
        attendance=marks,
        lessons=lessons,
        as_of=date(2025, 3, 1),
    )
    result.balance          # +3 credit / -2 debt
    result.audit_entries    # one entry per counted / explained lesson
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from studio_engines.coverage import (
    CoverageWindow,
    can_cover,
    capacity_of,
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
    PassStatus,
)
from studio_kernel.logging_config import get_logger

logger = get_logger("engines.balance_audit")


class AuditReason(str, Enum):
    """Why a lesson did or did not count against the balance."""

    COUNTED_PRESENT = "counted_present"
    COUNTED_ABSENCE_INVALID = "counted_absence_invalid"
    COUNTED_NO_ATTENDANCE_CONSECUTIVE = "counted_no_attendance_consecutive"
    NOT_COUNTED_VALID_SKIP = "not_counted_valid_skip"
    NOT_COUNTED_NO_ATTENDANCE = "not_counted_no_attendance"
    NOT_COUNTED_CANCELLED = "not_counted_cancelled"
    UNCOVERED_PASS_DEPLETED = "uncovered_pass_depleted"  # Window matched, no capacity left
    UNCOVERED_NO_MATCHING_PASS = "uncovered_no_matching_pass"  # No window covers the date


class EntryStatus(str, Enum):
    COUNTED = "counted"
    NOT_COUNTED = "not_counted"


@dataclass(frozen=True)
class BalanceAuditEntry:
    """One lesson's accounting disposition."""

    lesson_id: str
    lesson_date: date
    lesson_time: str
    attendance_status: AttendanceStatus | None
    status: EntryStatus
    reason: AuditReason
    covered_by_pass_id: str | None = None

    @property
    def is_counted(self) -> bool:
        return self.status == EntryStatus.COUNTED

    @property
    def is_uncovered(self) -> bool:
        """Counted against the student with no pass absorbing it (debt)."""
        return self.is_counted and self.covered_by_pass_id is None


@dataclass(frozen=True)
class UncoveredLesson:
    lesson_id: str
    date: date
    group_id: str


@dataclass(frozen=True)
class PassUsage:
    """How much of one pass the audit consumed."""

    pass_id: str
    lessons_used: int
    lessons_total: int
    purchase_date: date
    expiry_date: date | None = None

    @property
    def lessons_remaining(self) -> int:
        return max(self.lessons_total - self.lessons_used, 0)


@dataclass(frozen=True)
class BalanceAuditResult:
    """
    Complete audit for one student in one group.

    Guarantees:
        - ``balance`` is positive for remaining credit, negative for debt.
        - ``lessons_owed`` counts every COUNTED entry, covered or not.
        - ``lessons_covered`` counts COUNTED entries absorbed by a pass.
        - ``uncovered_lessons`` lists COUNTED entries without a pass.
    """

    balance: int
    lessons_owed: int
    lessons_covered: int
    uncovered_lessons: tuple[UncoveredLesson, ...]
    audit_entries: tuple[BalanceAuditEntry, ...]
    pass_usage: tuple[PassUsage, ...]

    def entry_for(self, lesson_id: str) -> BalanceAuditEntry | None:
        for entry in self.audit_entries:
            if entry.lesson_id == str(lesson_id):
                return entry
        return None

    def usage_for(self, pass_id: str) -> PassUsage | None:
        for usage in self.pass_usage:
            if usage.pass_id == str(pass_id):
                return usage
        return None


@dataclass(frozen=True)
class StudentBalanceSummary:
    """Balance of one student across every group they touch."""

    student_id: str
    surplus: int
    debt: int
    uncovered_lessons: tuple[UncoveredLesson, ...]
    group_balances: Mapping[str, int] = field(default_factory=dict)


class BalanceAuditEngine:
    """
    Audit a student's lesson balance in one group.

    Contract:
        Pure function of its inputs and ``as_of``.  No I/O, no clock.
    Guarantees:
        - Never raises for any combination of records.
        - Passes are allocated in purchase-date order, first match wins.
        - A pass expired relative to ``as_of`` still covers lessons dated
          before ``as_of`` but none on or after it.
    Non-goals:
        - Does not persist anything; callers re-run the audit whenever
          passes, lessons or attendance change.
        - Does not price lessons; see RevenueAllocationEngine.
    """

    def __init__(self, policy: LedgerPolicy | None = None):
        self.policy = policy or DEFAULT_LEDGER_POLICY

    @traced_engine("balance_audit", "2.0", fingerprint_fields=LEDGER_INPUTS)
    def audit(
        self,
        *,
        student_id: str,
        group_id: str,
        passes: Iterable[Pass],
        attendance: Iterable[AttendanceMark],
        lessons: Iterable[Lesson],
        as_of: date,
    ) -> BalanceAuditResult:
        """
        Run the balance audit.

        Args:
            student_id: Student whose balance is computed.
            group_id: Group the balance is scoped to.
            passes: Any passes; foreign ones are ignored.
            attendance: Any marks, possibly including provisional ones.
            lessons: Any lessons; other groups are ignored.
            as_of: Reference day ("today").

        Returns:
            BalanceAuditResult with balance, audit trail and pass usage.
        """
        t0 = time.monotonic()
        scope = build_scope(student_id, group_id, passes, lessons, attendance)
        logger.info("balance_audit_started", extra={
            "student_id": scope.student_id,
            "group_id": scope.group_id,
            "as_of": as_of,
            "pass_count": len(scope.passes),
            "lesson_count": len(scope.lessons),
            "mark_count": len(scope.marks),
        })

        if not scope.has_passes:
            result = self._audit_without_passes(scope)
        else:
            result = self._audit_with_passes(scope, as_of)

        logger.info("balance_audit_completed", extra={
            "student_id": scope.student_id,
            "group_id": scope.group_id,
            "balance": result.balance,
            "lessons_owed": result.lessons_owed,
            "lessons_covered": result.lessons_covered,
            "entry_count": len(result.audit_entries),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result

    def _audit_without_passes(self, scope: StudentGroupScope) -> BalanceAuditResult:
        """Every attended lesson is debt; invalid skips cost nothing without a pass."""
        entries: list[BalanceAuditEntry] = []

        for lesson in scope.lessons:
            mark = scope.mark_for(lesson)
            if mark is None:
                continue
            status = mark.status

            if lesson.is_cancelled:
                entries.append(_entry(lesson, status, AuditReason.NOT_COUNTED_CANCELLED))
            elif status == AttendanceStatus.ABSENCE_VALID:
                entries.append(_entry(lesson, status, AuditReason.NOT_COUNTED_VALID_SKIP))
            elif status == AttendanceStatus.PRESENT:
                entries.append(_entry(lesson, status, AuditReason.UNCOVERED_NO_MATCHING_PASS))
            elif status == AttendanceStatus.ABSENCE_INVALID:
                entries.append(_entry(lesson, status, AuditReason.NOT_COUNTED_NO_ATTENDANCE))

        owed = sum(1 for e in entries if e.is_counted)
        return BalanceAuditResult(
            balance=-owed,
            lessons_owed=owed,
            lessons_covered=0,
            uncovered_lessons=_uncovered(entries, scope.group_id),
            audit_entries=tuple(entries),
            pass_usage=(),
        )

    def _audit_with_passes(self, scope: StudentGroupScope, as_of: date) -> BalanceAuditResult:
        windows = resolve_coverage_windows(scope.passes, self.policy.open_window_end)
        remaining: dict[str, int] = {str(p.id): capacity_of(p) for p in scope.passes}
        used: dict[str, int] = {str(p.id): 0 for p in scope.passes}
        entries: list[BalanceAuditEntry] = []

        for lesson in scope.lessons:
            mark = scope.mark_for(lesson)
            status = mark.status if mark is not None else None
            auto_consumed = (
                mark is None
                and self.policy.auto_consume_unmarked
                and lesson.date < as_of
                and any(
                    w.is_consecutive and w.covers(lesson.date)
                    for w in windows.values()
                )
            )

            if mark is None and not auto_consumed:
                continue
            if lesson.is_cancelled:
                entries.append(_entry(lesson, status, AuditReason.NOT_COUNTED_CANCELLED))
                continue
            if status == AttendanceStatus.ABSENCE_VALID:
                entries.append(_entry(lesson, status, AuditReason.NOT_COUNTED_VALID_SKIP))
                continue

            is_present = auto_consumed or status == AttendanceStatus.PRESENT
            is_invalid_skip = status == AttendanceStatus.ABSENCE_INVALID
            if not (is_present or is_invalid_skip):
                continue

            entries.append(self._charge(
                lesson=lesson,
                status=status,
                auto_consumed=auto_consumed,
                is_present=is_present,
                is_invalid_skip=is_invalid_skip,
                passes=scope.passes,
                windows=windows,
                remaining=remaining,
                used=used,
                as_of=as_of,
            ))

        owed = sum(1 for e in entries if e.is_counted)
        covered = sum(1 for e in entries if e.covered_by_pass_id is not None)
        # Archived passes nobody used do not contribute capacity
        total_capacity = sum(
            capacity_of(p) for p in scope.passes
            if p.status != PassStatus.ARCHIVED or used[str(p.id)] > 0
        )

        usage = tuple(
            PassUsage(
                pass_id=str(p.id),
                lessons_used=used[str(p.id)],
                lessons_total=capacity_of(p),
                purchase_date=p.purchase_date,
                expiry_date=p.expiry_date,
            )
            for p in scope.passes
        )

        return BalanceAuditResult(
            balance=total_capacity - owed,
            lessons_owed=owed,
            lessons_covered=covered,
            uncovered_lessons=_uncovered(entries, scope.group_id),
            audit_entries=tuple(entries),
            pass_usage=usage,
        )

    def _charge(
        self,
        *,
        lesson: Lesson,
        status: AttendanceStatus | None,
        auto_consumed: bool,
        is_present: bool,
        is_invalid_skip: bool,
        passes: Sequence[Pass],
        windows: Mapping[str, CoverageWindow],
        remaining: dict[str, int],
        used: dict[str, int],
        as_of: date,
    ) -> BalanceAuditEntry:
        """Find the first pass that absorbs a spending lesson, or record debt."""
        window_matched = False
        consecutive_matched = False

        for p in passes:
            pass_id = str(p.id)
            if not windows[pass_id].covers(lesson.date):
                continue
            if not can_cover(p, lesson.date, as_of):
                continue

            window_matched = True
            if p.is_consecutive:
                consecutive_matched = True
            elif auto_consumed or is_invalid_skip:
                continue

            if remaining[pass_id] > 0:
                remaining[pass_id] -= 1
                used[pass_id] += 1
                if auto_consumed:
                    reason = AuditReason.COUNTED_NO_ATTENDANCE_CONSECUTIVE
                elif is_present:
                    reason = AuditReason.COUNTED_PRESENT
                else:
                    reason = AuditReason.COUNTED_ABSENCE_INVALID
                return _entry(lesson, status, reason, covered_by=pass_id)

        if is_present or consecutive_matched:
            reason = (
                AuditReason.UNCOVERED_PASS_DEPLETED
                if window_matched
                else AuditReason.UNCOVERED_NO_MATCHING_PASS
            )
            return _entry(lesson, status, reason)

        # Invalid skip seen only by non-consecutive windows: free
        return _entry(lesson, status, AuditReason.NOT_COUNTED_NO_ATTENDANCE)


def summarize_student_balance(
    student_id: str,
    passes: Sequence[Pass],
    attendance: Sequence[AttendanceMark],
    lessons: Sequence[Lesson],
    as_of: date,
    engine: BalanceAuditEngine | None = None,
) -> StudentBalanceSummary:
    """
    Roll a student's balance up across every group.

    A group is included when the student holds a pass in it or has an
    attendance mark on one of its lessons.  Positive group balances add to
    ``surplus``, negative ones to ``debt``; they never cancel each other
    out, because credit in one group cannot pay for lessons in another.
    """
    engine = engine or BalanceAuditEngine()
    sid = str(student_id)
    lesson_groups = {str(lesson.id): str(lesson.group_id) for lesson in lessons}

    group_ids: list[str] = []
    for p in passes:
        if str(p.student_id) == sid and str(p.group_id) not in group_ids:
            group_ids.append(str(p.group_id))
    for mark in attendance:
        gid = lesson_groups.get(str(mark.lesson_id))
        if str(mark.student_id) == sid and gid is not None and gid not in group_ids:
            group_ids.append(gid)

    surplus = 0
    debt = 0
    uncovered: list[UncoveredLesson] = []
    balances: dict[str, int] = {}
    for gid in sorted(group_ids):
        result = engine.audit(
            student_id=sid,
            group_id=gid,
            passes=passes,
            attendance=attendance,
            lessons=lessons,
            as_of=as_of,
        )
        balances[gid] = result.balance
        if result.balance > 0:
            surplus += result.balance
        else:
            debt += abs(result.balance)
        uncovered.extend(result.uncovered_lessons)

    return StudentBalanceSummary(
        student_id=sid,
        surplus=surplus,
        debt=debt,
        uncovered_lessons=tuple(uncovered),
        group_balances=balances,
    )


def _entry(
    lesson: Lesson,
    status: AttendanceStatus | None,
    reason: AuditReason,
    covered_by: str | None = None,
) -> BalanceAuditEntry:
    counted = reason in _COUNTED_REASONS
    return BalanceAuditEntry(
        lesson_id=str(lesson.id),
        lesson_date=lesson.date,
        lesson_time=lesson.time,
        attendance_status=status,
        status=EntryStatus.COUNTED if counted else EntryStatus.NOT_COUNTED,
        reason=reason,
        covered_by_pass_id=covered_by,
    )


def _uncovered(entries: Sequence[BalanceAuditEntry], group_id: str) -> tuple[UncoveredLesson, ...]:
    return tuple(
        UncoveredLesson(lesson_id=e.lesson_id, date=e.lesson_date, group_id=group_id)
        for e in entries
        if e.is_uncovered
    )


_COUNTED_REASONS = frozenset({
    AuditReason.COUNTED_PRESENT,
    AuditReason.COUNTED_ABSENCE_INVALID,
    AuditReason.COUNTED_NO_ATTENDANCE_CONSECUTIVE,
    AuditReason.UNCOVERED_PASS_DEPLETED,
    AuditReason.UNCOVERED_NO_MATCHING_PASS,
})
