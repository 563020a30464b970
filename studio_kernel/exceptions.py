"""
Typed exception hierarchy for the studio kernel.

Every error has a TYPED class, a machine-readable ``code`` and structured
attributes, so callers catch by type and never parse messages:

    try:
        preview = service.preview_attendance(student_id, lesson_id)
    except LessonNotFoundError as e:
        api_response(code=e.code, lesson=e.lesson_id)

The balance and revenue engines never raise: they filter inconsistent data
instead.  These exceptions belong to the layers around them (record mapping,
selectors, services).

Hierarchy:

    StudioKernelError (base)
    |
    +-- ValueMappingError
    |
    +-- LessonError
    |   +-- LessonNotFoundError
    |
    +-- PassError
    |   +-- PassNotFoundError
    |
    +-- AttendanceError
        +-- InvalidAttendanceStatusError

Category    | Code                       | When Raised
------------|----------------------------|------------------------------------
Mapping     | VALUE_MAPPING_ERROR        | Raw record cannot become a domain value
Lesson      | LESSON_NOT_FOUND           | Lesson ID doesn't exist
Pass        | PASS_NOT_FOUND             | Pass ID doesn't exist
Attendance  | INVALID_ATTENDANCE_STATUS  | Status is not present/absence_valid/absence_invalid
"""


class StudioKernelError(Exception):
    """
    Base exception for all studio kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "STUDIO_KERNEL_ERROR"


class ValueMappingError(StudioKernelError):
    """A raw record could not be converted into a domain value."""

    code: str = "VALUE_MAPPING_ERROR"

    def __init__(self, record_type: str, field: str, value: object):
        self.record_type = record_type
        self.field = field
        self.value = value
        super().__init__(f"Cannot map {record_type}.{field} from {value!r}")


# Lesson-related exceptions


class LessonError(StudioKernelError):
    """Base exception for lesson-related errors."""

    code: str = "LESSON_ERROR"


class LessonNotFoundError(LessonError):
    """Lesson with given ID was not found."""

    code: str = "LESSON_NOT_FOUND"

    def __init__(self, lesson_id: str):
        self.lesson_id = str(lesson_id)
        super().__init__(f"Lesson not found: {lesson_id}")


# Pass-related exceptions


class PassError(StudioKernelError):
    """Base exception for pass (subscription) errors."""

    code: str = "PASS_ERROR"


class PassNotFoundError(PassError):
    """Pass with given ID was not found."""

    code: str = "PASS_NOT_FOUND"

    def __init__(self, pass_id: str):
        self.pass_id = str(pass_id)
        super().__init__(f"Pass not found: {pass_id}")


# Attendance-related exceptions


class AttendanceError(StudioKernelError):
    """Base exception for attendance errors."""

    code: str = "ATTENDANCE_ERROR"


class InvalidAttendanceStatusError(AttendanceError):
    """Attendance status is not one of the known marks."""

    code: str = "INVALID_ATTENDANCE_STATUS"

    def __init__(self, status: object):
        self.status = status
        super().__init__(f"Invalid attendance status: {status!r}")
