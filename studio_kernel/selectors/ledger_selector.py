"""
Module: studio_kernel.selectors.ledger_selector
Responsibility: Read-only snapshots of passes, lessons and attendance marks,
    shaped for the balance and revenue engines.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/values and selectors/base.py.

Invariants enforced:
    - Snapshots contain domain records only (frozen dataclasses).
    - Lessons are returned in (date, time) order, passes in purchase order;
      engines re-sort anyway, so order here is a convenience.

Failure modes:
    - Returns empty snapshots when nothing matches; never raises for
      unknown students or groups.
    - get_lesson returns None for unknown or malformed ids.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from studio_kernel.domain.values import AttendanceMark, Lesson, Pass
from studio_kernel.models.attendance import AttendanceModel
from studio_kernel.models.lesson import LessonModel
from studio_kernel.models.subscription import SubscriptionModel
from studio_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable engine input for one computation."""

    passes: tuple[Pass, ...]
    lessons: tuple[Lesson, ...]
    attendance: tuple[AttendanceMark, ...]


class LedgerSelector(BaseSelector[SubscriptionModel]):
    """
    Selector for ledger engine inputs.

    Contract:
        Every method is a pure read.  Identifiers are accepted as str or UUID
        and compared as strings against the opaque student/group columns.
    """

    def passes_for(self, student_id: str, group_id: str | None = None) -> list[Pass]:
        stmt = select(SubscriptionModel).where(
            SubscriptionModel.student_id == str(student_id)
        )
        if group_id is not None:
            stmt = stmt.where(SubscriptionModel.group_id == str(group_id))
        stmt = stmt.order_by(SubscriptionModel.purchase_date, SubscriptionModel.id)
        return [row.to_domain() for row in self.session.scalars(stmt)]

    def lessons_for_groups(self, group_ids: list[str]) -> list[Lesson]:
        if not group_ids:
            return []
        stmt = (
            select(LessonModel)
            .where(LessonModel.group_id.in_([str(g) for g in group_ids]))
            .order_by(LessonModel.lesson_date, LessonModel.start_time)
        )
        return [row.to_domain() for row in self.session.scalars(stmt)]

    def attendance_for_student(self, student_id: str) -> list[AttendanceMark]:
        stmt = (
            select(AttendanceModel)
            .where(AttendanceModel.student_id == str(student_id))
            .order_by(AttendanceModel.created_at, AttendanceModel.id)
        )
        return [row.to_domain() for row in self.session.scalars(stmt)]

    def attendance_for_lesson(self, lesson_id: str) -> list[AttendanceMark]:
        lesson_uuid = _as_uuid(lesson_id)
        if lesson_uuid is None:
            return []
        stmt = (
            select(AttendanceModel)
            .where(AttendanceModel.lesson_id == lesson_uuid)
            .order_by(AttendanceModel.student_id)
        )
        return [row.to_domain() for row in self.session.scalars(stmt)]

    def get_lesson(self, lesson_id: str) -> Lesson | None:
        lesson_uuid = _as_uuid(lesson_id)
        if lesson_uuid is None:
            return None
        row = self.session.get(LessonModel, lesson_uuid)
        return row.to_domain() if row is not None else None

    def snapshot(self, student_id: str, group_id: str) -> LedgerSnapshot:
        """Inputs for one student in one group."""
        return LedgerSnapshot(
            passes=tuple(self.passes_for(student_id, group_id)),
            lessons=tuple(self.lessons_for_groups([str(group_id)])),
            attendance=tuple(self.attendance_for_student(student_id)),
        )

    def student_snapshot(self, student_id: str) -> LedgerSnapshot:
        """Inputs for one student across every group they touch."""
        passes = self.passes_for(student_id)
        attendance = self.attendance_for_student(student_id)

        group_ids = {p.group_id for p in passes}
        lesson_uuids = {_as_uuid(m.lesson_id) for m in attendance} - {None}
        if lesson_uuids:
            stmt = select(LessonModel.group_id).where(LessonModel.id.in_(lesson_uuids))
            group_ids.update(self.session.scalars(stmt))

        return LedgerSnapshot(
            passes=tuple(passes),
            lessons=tuple(self.lessons_for_groups(sorted(group_ids))),
            attendance=tuple(attendance),
        )


def _as_uuid(value: str | UUID) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
