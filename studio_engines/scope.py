"""
Module: studio_engines.scope
Responsibility:
    Narrow the studio-wide record lists down to one (student, group) pair
    and put them in canonical order.  Shared first step of the balance
    audit and the revenue allocation.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Identifiers are compared as strings, so UUIDs from storage and plain
      strings from a transport layer match each other.
    - Passes sorted by purchase date, lessons by (date, time).
    - At most one attendance mark per lesson survives: the LAST one in the
      caller's list wins, which lets provisional marks appended by a caller
      override persisted ones.
    - Orphaned marks (unknown lesson, other group) and undated records are
      dropped, never raised.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from studio_kernel.domain.values import (
    AttendanceMark,
    Lesson,
    Pass,
    lesson_sort_key,
    pass_sort_key,
)


@dataclass(frozen=True)
class StudentGroupScope:
    """Everything one student+group computation may look at."""

    student_id: str
    group_id: str
    passes: tuple[Pass, ...]
    lessons: tuple[Lesson, ...]
    marks: dict[str, AttendanceMark]

    @property
    def has_passes(self) -> bool:
        return bool(self.passes)

    def mark_for(self, lesson: Lesson) -> AttendanceMark | None:
        return self.marks.get(str(lesson.id))


def build_scope(
    student_id: str,
    group_id: str,
    passes: Iterable[Pass],
    lessons: Iterable[Lesson],
    attendance: Iterable[AttendanceMark],
) -> StudentGroupScope:
    """Filter and order the inputs for one student in one group."""
    sid = str(student_id)
    gid = str(group_id)

    scoped_passes = sorted(
        (
            p for p in passes or ()
            if p is not None
            and str(p.student_id) == sid
            and str(p.group_id) == gid
            and p.purchase_date is not None
        ),
        key=pass_sort_key,
    )

    scoped_lessons = sorted(
        (
            lesson for lesson in lessons or ()
            if lesson is not None
            and str(lesson.group_id) == gid
            and lesson.date is not None
        ),
        key=lesson_sort_key,
    )

    lesson_ids = {str(lesson.id) for lesson in scoped_lessons}
    marks: dict[str, AttendanceMark] = {}
    for mark in attendance or ():
        if mark is None or str(mark.student_id) != sid:
            continue
        if str(mark.lesson_id) in lesson_ids:
            marks[str(mark.lesson_id)] = mark

    return StudentGroupScope(
        student_id=sid,
        group_id=gid,
        passes=tuple(scoped_passes),
        lessons=tuple(scoped_lessons),
        marks=marks,
    )
