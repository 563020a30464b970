"""ORM models for the studio kernel."""

from studio_kernel.models.attendance import AttendanceModel
from studio_kernel.models.lesson import LessonModel
from studio_kernel.models.subscription import SubscriptionModel

__all__ = [
    "AttendanceModel",
    "LessonModel",
    "SubscriptionModel",
]
