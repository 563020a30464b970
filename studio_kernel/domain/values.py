"""
Values -- Immutable domain records for the studio ledger.

Responsibility:
    Provides the record types every ledger computation works on: Lesson,
    Pass (a purchased subscription) and AttendanceMark, plus their status
    enums.  Each type can be built from a raw storage/transport record via
    ``from_mapping``, which accepts the snake_case and camelCase spellings
    used by the studio's collaborators.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by engines, selectors and services.

Invariants enforced:
    - Lessons are totally ordered by ``(date, time)``; ``lesson_sort_key``
      adds the lesson id as a final tie-break so ordering never depends on
      input order.
    - Passes are ordered by purchase date (``pass_sort_key``).
    - Money is ``Decimal``; floats are converted via ``str()`` so 280.0
      becomes Decimal("280.0"), never a binary approximation.

Failure modes:
    - ValueMappingError from ``from_mapping`` when a required field is
      missing or cannot be parsed.
    - InvalidAttendanceStatusError for unknown attendance statuses.

Audit relevance:
    These records are the sole inputs of the balance audit.  Keeping them
    frozen means an audit result can always be traced back to the exact
    snapshot it was computed from.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from studio_kernel.exceptions import InvalidAttendanceStatusError, ValueMappingError


class LessonStatus(str, Enum):
    """Lifecycle of a scheduled lesson."""

    UPCOMING = "upcoming"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PassStatus(str, Enum):
    """Pass lifecycle. Transitions are one-way: ACTIVE -> ARCHIVED."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class AttendanceStatus(str, Enum):
    """Attendance mark for one (lesson, student) pair."""

    PRESENT = "present"
    ABSENCE_VALID = "absence_valid"  # Excused, never consumes a credit
    ABSENCE_INVALID = "absence_invalid"  # Unexcused skip

    @classmethod
    def parse(cls, value: Any) -> AttendanceStatus:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidAttendanceStatusError(value) from None


@dataclass(frozen=True, slots=True)
class Lesson:
    """
    One scheduled class occurrence.

    Contract:
        Belongs to exactly one group.  ``time`` is a zero-padded "HH:mm"
        string, so string order equals clock order.
    """

    id: str
    group_id: str
    date: date
    time: str = "00:00"
    duration_minutes: int = 60
    status: LessonStatus = LessonStatus.UPCOMING

    @property
    def is_cancelled(self) -> bool:
        return self.status == LessonStatus.CANCELLED

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Lesson:
        """Build a Lesson from a raw record."""
        return cls(
            id=str(_require(data, "Lesson", "id", "_id")),
            group_id=str(_require(data, "Lesson", "group_id", "groupId")),
            date=parse_day(_require(data, "Lesson", "date"), "Lesson", "date"),
            time=str(_pick(data, "time") or "00:00"),
            duration_minutes=int(_pick(data, "duration_minutes", "durationMinutes") or 60),
            status=_parse_enum(
                LessonStatus, _pick(data, "status"), LessonStatus.UPCOMING, "Lesson"
            ),
        )


@dataclass(frozen=True, slots=True)
class Pass:
    """
    A purchased block of lesson credits for one student in one group.

    Contract:
        Immutable once created except for the ACTIVE -> ARCHIVED status
        transition.  ``lessons_total`` is the capacity; ``price`` is the
        amount paid for the whole block.

    Non-goals:
        - Does not validate ``lessons_total`` or ``price``.  Engines read
          them through ``capacity_of`` / ``price_of`` which degrade bad
          values to zero.
    """

    id: str
    student_id: str
    group_id: str
    purchase_date: date
    lessons_total: int
    price: Decimal
    is_consecutive: bool = False
    expiry_date: date | None = None
    status: PassStatus = PassStatus.ACTIVE
    duration_days: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status == PassStatus.ACTIVE

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Pass:
        """Build a Pass from a raw subscription record."""
        expiry = _pick(data, "expiry_date", "expiryDate")
        duration = _pick(data, "duration_days", "durationDays")
        return cls(
            id=str(_require(data, "Pass", "id", "_id")),
            student_id=str(_require(data, "Pass", "student_id", "studentId", "user_id", "userId")),
            group_id=str(_require(data, "Pass", "group_id", "groupId")),
            purchase_date=parse_day(
                _require(data, "Pass", "purchase_date", "purchaseDate"), "Pass", "purchase_date"
            ),
            lessons_total=_pick(data, "lessons_total", "lessonsTotal"),
            price=to_decimal(_pick(data, "price")),
            is_consecutive=_parse_flag(
                _pick(data, "is_consecutive", "isConsecutive"), "Pass", "is_consecutive"
            ),
            expiry_date=parse_day(expiry, "Pass", "expiry_date") if expiry else None,
            status=_parse_enum(PassStatus, _pick(data, "status"), PassStatus.ACTIVE, "Pass"),
            duration_days=int(duration) if duration else None,
        )


@dataclass(frozen=True, slots=True)
class AttendanceMark:
    """
    Attendance for one (lesson, student) pair.

    ``provisional`` marks are uncommitted "what if" records a caller adds to
    preview the effect of a status change.  Engines treat them exactly like
    persisted marks.
    """

    lesson_id: str
    student_id: str
    status: AttendanceStatus
    provisional: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AttendanceMark:
        return cls(
            lesson_id=str(_require(data, "AttendanceMark", "lesson_id", "lessonId")),
            student_id=str(_require(data, "AttendanceMark", "student_id", "studentId")),
            status=AttendanceStatus.parse(_require(data, "AttendanceMark", "status")),
        )


def lesson_sort_key(lesson: Lesson) -> tuple[date, str, str]:
    return (lesson.date, lesson.time or "", str(lesson.id))


def pass_sort_key(pass_: Pass) -> tuple[date, str]:
    return (pass_.purchase_date, str(pass_.id))


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def parse_day(value: Any, record_type: str = "value", field: str = "date") -> date:
    """Parse an ISO day (``YYYY-MM-DD``) or pass a ``date`` through."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise ValueMappingError(record_type, field, value)


def to_decimal(value: Any) -> Decimal:
    """Convert a numeric value to Decimal; None or garbage becomes zero."""
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _require(data: Mapping[str, Any], record_type: str, *keys: str) -> Any:
    value = _pick(data, *keys)
    if value is None or value == "":
        raise ValueMappingError(record_type, keys[0], None)
    return value


_TRUE_WORDS = frozenset({"true", "yes", "1"})
_FALSE_WORDS = frozenset({"false", "no", "0", ""})


def _parse_flag(value: Any, record_type: str, field: str) -> bool:
    """Stored booleans, 0/1, and their text forms such as "false"."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValueMappingError(record_type, field, value)


def _parse_enum(enum_cls: type[Enum], value: Any, default: Enum, record_type: str) -> Any:
    if not value:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise ValueMappingError(record_type, "status", value) from None
