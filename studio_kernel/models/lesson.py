"""
Module: studio_kernel.models.lesson
Responsibility: ORM persistence for scheduled lesson occurrences.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - A lesson belongs to exactly one group.
    - Lessons are read back ordered by (lesson_date, start_time) -- the sole
      basis for pass allocation.

Audit relevance:
    Rescheduling or cancelling a lesson changes every balance that touches
    its group; balances are never stored, so the next audit reflects it.
"""

from datetime import date

from sqlalchemy import Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from studio_kernel.db.base import TrackedBase
from studio_kernel.domain.values import Lesson, LessonStatus


class LessonModel(TrackedBase):
    """One scheduled class occurrence."""

    __tablename__ = "lessons"

    __table_args__ = (
        Index("idx_lesson_group_date", "group_id", "date"),
    )

    group_id: Mapped[str] = mapped_column(String(64), nullable=False)

    lesson_date: Mapped[date] = mapped_column("date", Date, nullable=False)

    # "HH:mm", zero padded
    start_time: Mapped[str] = mapped_column("time", String(5), nullable=False, default="00:00")

    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LessonStatus.UPCOMING.value,
    )

    def to_domain(self) -> Lesson:
        return Lesson(
            id=str(self.id),
            group_id=self.group_id,
            date=self.lesson_date,
            time=self.start_time,
            duration_minutes=self.duration_minutes,
            status=LessonStatus(self.status),
        )

    def __repr__(self) -> str:
        return f"<Lesson {self.group_id} {self.lesson_date} {self.start_time} [{self.status}]>"
