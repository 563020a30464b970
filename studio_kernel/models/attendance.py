"""
Module: studio_kernel.models.attendance
Responsibility: ORM persistence for attendance marks.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - At most one mark per (lesson, student) (uq_attendance_lesson_student).
    - The absence of a row means "not marked".
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from studio_kernel.db.base import TrackedBase, UUIDString
from studio_kernel.domain.values import AttendanceMark, AttendanceStatus


class AttendanceModel(TrackedBase):
    """Attendance mark for one student on one lesson."""

    __tablename__ = "attendance"

    __table_args__ = (
        UniqueConstraint("lesson_id", "student_id", name="uq_attendance_lesson_student"),
        Index("idx_attendance_student", "student_id"),
    )

    lesson_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
    )

    student_id: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    def to_domain(self) -> AttendanceMark:
        return AttendanceMark(
            lesson_id=str(self.lesson_id),
            student_id=self.student_id,
            status=AttendanceStatus.parse(self.status),
        )

    def __repr__(self) -> str:
        return f"<Attendance {self.lesson_id}/{self.student_id} [{self.status}]>"
