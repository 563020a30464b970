"""
Module: studio_engines.coverage
Responsibility:
    Compute, for a student's passes in one group, the interval of lesson
    dates each pass may absorb (its coverage window), and answer the small
    questions both ledger engines ask about a pass: is it expired relative
    to a reference day, how much capacity does it have, what is it worth.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import studio_kernel.domain.

Invariants enforced:
    - Non-consecutive window: [purchase_date, end) where end is the next
      non-consecutive purchase date if that comes first, else the pass's
      own expiry date, else the open end.
    - Consecutive window: [purchase_date, expiry_date or open end], both
      ends inclusive, never truncated by later passes.
    - Windows are re-derived on every call; nothing is persisted.
    - capacity_of / price_of never raise and never return NaN.

Failure modes:
    None.  Bad numeric fields degrade to zero.

Usage:
    from studio_engines.coverage import resolve_coverage_windows

    windows = resolve_coverage_windows(scope.passes)
    if windows[pass_id].covers(lesson.date):
        ...
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from studio_kernel.domain.policy import DEFAULT_LEDGER_POLICY
from studio_kernel.domain.values import Pass, PassStatus, pass_sort_key, to_decimal


@dataclass(frozen=True)
class CoverageWindow:
    """
    Date interval a single pass may cover.

    Guarantees:
        - ``start <= day`` is always required.
        - ``end`` is inclusive for consecutive passes and exclusive for
          non-consecutive passes.
    """

    pass_id: str
    start: date
    end: date
    is_consecutive: bool

    @property
    def end_inclusive(self) -> bool:
        return self.is_consecutive

    def covers(self, day: date) -> bool:
        if day < self.start:
            return False
        if self.end_inclusive:
            return day <= self.end
        return day < self.end


def resolve_coverage_windows(
    passes: Sequence[Pass],
    open_end: date = DEFAULT_LEDGER_POLICY.open_window_end,
) -> dict[str, CoverageWindow]:
    """Map pass id to coverage window, in purchase-date order."""
    ordered = sorted(passes, key=pass_sort_key)
    flexible = [p for p in ordered if not p.is_consecutive]
    next_purchase: dict[str, date] = {
        str(current.id): following.purchase_date
        for current, following in zip(flexible, flexible[1:])
    }

    windows: dict[str, CoverageWindow] = {}
    for p in ordered:
        end = p.expiry_date or open_end
        if not p.is_consecutive:
            truncated_at = next_purchase.get(str(p.id))
            if truncated_at is not None and truncated_at < end:
                end = truncated_at
        windows[str(p.id)] = CoverageWindow(
            pass_id=str(p.id),
            start=p.purchase_date,
            end=end,
            is_consecutive=bool(p.is_consecutive),
        )
    return windows


def is_expired_as_of(pass_: Pass, day: date) -> bool:
    """Archived, or expiry date strictly before ``day``."""
    if pass_.status == PassStatus.ARCHIVED:
        return True
    return pass_.expiry_date is not None and pass_.expiry_date < day


def can_cover(pass_: Pass, lesson_day: date, as_of: date) -> bool:
    """An expired pass still covers past lessons, never ones on/after ``as_of``."""
    return not (is_expired_as_of(pass_, as_of) and lesson_day >= as_of)


def find_expired_passes(passes: Iterable[Pass], as_of: date) -> list[Pass]:
    """Active passes whose expiry date has passed; candidates for archiving."""
    return sorted(
        (
            p for p in passes
            if p.status != PassStatus.ARCHIVED
            and p.expiry_date is not None
            and p.expiry_date < as_of
        ),
        key=pass_sort_key,
    )


def capacity_of(pass_: Pass) -> int:
    """Lesson capacity; missing, non-numeric or negative totals count as 0."""
    value = pass_.lessons_total
    if value is None or isinstance(value, bool):
        return 0
    try:
        capacity = int(value)
    except (TypeError, ValueError, OverflowError, ArithmeticError):
        return 0
    return max(capacity, 0)


def price_of(pass_: Pass) -> Decimal:
    return to_decimal(pass_.price)


def per_lesson_rate(pass_: Pass) -> Decimal:
    """Fixed rate ``price / lessons_total``; the divisor falls back to 1."""
    return price_of(pass_) / (capacity_of(pass_) or 1)


def format_amount(value: Decimal) -> str:
    """Render an amount for equation strings: 280 -> "280", 280.50 -> "280.5"."""
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def format_whole(value: Decimal) -> str:
    """Round half-up to an integer for display."""
    return str(int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))
