"""
Module: studio_engines.preview
Responsibility:
    Answer "what would happen if this student were marked present / as an
    invalid skip on this lesson?" before anything is committed.  The
    caller's attendance list is extended with a provisional mark and the
    balance audit is re-run; nothing persisted is touched.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Composes BalanceAuditEngine.

Invariants enforced:
    - Inputs are never mutated; the provisional mark is appended to a copy.
    - A provisional mark overrides any existing mark for the same
      (lesson, student) because the audit keeps the last mark it sees.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from studio_engines.balance_audit import BalanceAuditEngine, BalanceAuditEntry
from studio_engines.coverage import per_lesson_rate
from studio_kernel.domain.values import AttendanceMark, AttendanceStatus, Lesson, Pass


@dataclass(frozen=True)
class AttendancePreview:
    """Projected outcome of marking one student on one lesson."""

    lesson_id: str
    student_id: str
    has_active_pass: bool
    is_uncovered_present: bool
    is_uncovered_skip: bool
    present_payment_amount: Decimal | None = None
    skip_payment_amount: Decimal | None = None


def with_provisional_mark(
    attendance: Sequence[AttendanceMark],
    lesson_id: str,
    student_id: str,
    status: AttendanceStatus,
) -> list[AttendanceMark]:
    """Copy of ``attendance`` with a provisional mark appended."""
    return [
        *attendance,
        AttendanceMark(
            lesson_id=str(lesson_id),
            student_id=str(student_id),
            status=status,
            provisional=True,
        ),
    ]


def preview_attendance(
    *,
    student_id: str,
    lesson: Lesson,
    passes: Sequence[Pass],
    attendance: Sequence[AttendanceMark],
    lessons: Sequence[Lesson],
    as_of: date,
    engine: BalanceAuditEngine | None = None,
) -> AttendancePreview:
    """Preview the present and invalid-skip outcomes for one lesson."""
    engine = engine or BalanceAuditEngine()
    by_id = {str(p.id): p for p in passes}

    def _project(status: AttendanceStatus) -> BalanceAuditEntry | None:
        result = engine.audit(
            student_id=student_id,
            group_id=lesson.group_id,
            passes=passes,
            attendance=with_provisional_mark(attendance, lesson.id, student_id, status),
            lessons=lessons,
            as_of=as_of,
        )
        return result.entry_for(lesson.id)

    def _amount(entry: BalanceAuditEntry | None) -> Decimal | None:
        if entry is None or entry.covered_by_pass_id is None:
            return None
        covering = by_id.get(entry.covered_by_pass_id)
        if covering is None:
            return None
        amount = per_lesson_rate(covering)
        return amount if amount > 0 else None

    present = _project(AttendanceStatus.PRESENT)
    skip = _project(AttendanceStatus.ABSENCE_INVALID)

    return AttendancePreview(
        lesson_id=str(lesson.id),
        student_id=str(student_id),
        has_active_pass=present is not None and present.covered_by_pass_id is not None,
        is_uncovered_present=present is not None and present.is_uncovered,
        is_uncovered_skip=skip is not None and skip.is_uncovered,
        present_payment_amount=_amount(present),
        skip_payment_amount=_amount(skip),
    )
