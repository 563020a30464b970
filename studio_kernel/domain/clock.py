"""
Clock -- Deterministic reference-day abstraction.

Responsibility:
    Provides an injectable clock so that engine and service code never call
    ``datetime.now()`` or ``date.today()`` directly.  The ledger engines only
    care about the studio's calendar day (``today()``), which decides whether
    a lesson is in the past, whether a pass has expired, and whether a cost
    is realized or estimated.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - ZoneInfoNotFoundError from SystemClock if the configured timezone
      name is unknown.

Audit relevance:
    A balance computed yesterday must be reproducible today.  Every engine
    call receives its reference day from a Clock instance, so a stored
    ``as_of`` is enough to replay any audit.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services that need the current time receive a Clock via constructor
        injection.  Engines never see a Clock; they receive the plain
        ``as_of`` day that a service derived from it.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` returns the calendar day of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current calendar day."""
        return self.now().date()


class SystemClock(Clock):
    """
    Production clock that returns actual system time.

    Contract:
        The sole sanctioned I/O boundary for time in the kernel.  The studio
        works in local calendar days, so the clock is bound to a timezone.

    Non-goals:
        Not suitable for deterministic replay or testing.
    """

    def __init__(self, tz_name: str = "UTC"):
        self._tz = timezone.utc if tz_name == "UTC" else ZoneInfo(tz_name)

    def now(self) -> datetime:
        """Get current system time in the studio timezone."""
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``set_day()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )

    @classmethod
    def on(cls, day: date | str) -> "DeterministicClock":
        """Build a clock fixed at noon UTC of the given day."""
        if isinstance(day, str):
            day = date.fromisoformat(day)
        return cls(datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._fixed_time

    def set_day(self, day: date) -> None:
        """Move the clock to noon UTC of ``day``."""
        self._fixed_time = datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc)
