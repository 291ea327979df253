"""Period boundary utilities.

A period is a 7-day UTC window anchored to a track's ``period_start_day``
(0=Sunday, 1=Monday, ... 6=Saturday). ``start`` is midnight of the most
recent anchor day on or before the instant; ``end`` is ``start + 7 days - 1ms``.
All functions here are pure.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

PERIOD_LENGTH = timedelta(days=7)
_END_OFFSET = PERIOD_LENGTH - timedelta(milliseconds=1)

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass(frozen=True)
class PeriodBoundaries:
    """Inclusive [start, end] bounds of one scoring period."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= as_utc(instant) <= self.end

    def previous(self) -> PeriodBoundaries:
        return PeriodBoundaries(self.start - PERIOD_LENGTH, self.end - PERIOD_LENGTH)

    def next(self) -> PeriodBoundaries:
        return PeriodBoundaries(self.start + PERIOD_LENGTH, self.end + PERIOD_LENGTH)


def as_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def start_of_day(dt: datetime | date) -> datetime:
    """UTC midnight of the calendar day containing dt."""
    d = as_utc(dt).date() if isinstance(dt, datetime) else dt
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def sunday_based_weekday(dt: datetime | date) -> int:
    """Weekday with Sunday=0 (Python's weekday() has Monday=0)."""
    d = as_utc(dt).date() if isinstance(dt, datetime) else dt
    return (d.weekday() + 1) % 7


def validate_period_start_day(period_start_day: int) -> int:
    """Raise ValueError unless the anchor is a weekday number 0..6."""
    if isinstance(period_start_day, bool) or not isinstance(period_start_day, int):
        raise ValueError(f"period_start_day must be an integer, got {period_start_day!r}")
    if not 0 <= period_start_day <= 6:
        raise ValueError(f"period_start_day must be between 0 and 6, got {period_start_day}")
    return period_start_day


def get_period_boundaries(instant: datetime | date, period_start_day: int) -> PeriodBoundaries:
    """Get the period containing instant for the given anchor weekday."""
    validate_period_start_day(period_start_day)
    midnight = start_of_day(instant)
    days_back = (sunday_based_weekday(midnight) - period_start_day) % 7
    start = midnight - timedelta(days=days_back)
    return PeriodBoundaries(start=start, end=start + _END_OFFSET)


def get_current_period_boundaries(period_start_day: int, now: datetime | None = None) -> PeriodBoundaries:
    """Get boundaries for the period containing now."""
    if now is None:
        now = datetime.now(timezone.utc)
    return get_period_boundaries(now, period_start_day)


def get_past_period_boundaries(
    period_start_day: int,
    periods_ago: int,
    now: datetime | None = None,
) -> PeriodBoundaries:
    """Get the period that was current ``periods_ago`` weeks before now."""
    if now is None:
        now = datetime.now(timezone.utc)
    return get_period_boundaries(as_utc(now) - periods_ago * PERIOD_LENGTH, period_start_day)


def is_within_current_period(instant: datetime, period_start_day: int, now: datetime | None = None) -> bool:
    """True if instant falls in the period containing now."""
    return get_current_period_boundaries(period_start_day, now).contains(instant)


def resolve_period(
    selector: str | None,
    period_start_day: int,
    now: datetime | None = None,
) -> PeriodBoundaries:
    """Resolve a query selector to a period.

    Accepts ``None``/``"current"``, ``"previous"``, or an ISO 8601 date or
    datetime; the period containing that instant is returned.
    """
    if selector is None or selector == "current":
        return get_current_period_boundaries(period_start_day, now)
    if selector == "previous":
        return get_past_period_boundaries(period_start_day, 1, now)
    try:
        instant = datetime.fromisoformat(selector)
    except ValueError:
        raise ValueError(f"Invalid period selector: {selector!r}") from None
    return get_period_boundaries(instant, period_start_day)


def format_period_range(start: datetime, end: datetime) -> str:
    """Short display range, e.g. 'Feb 23 - Mar 1'."""
    return f"{start:%b} {start.day} - {end:%b} {end.day}"


def get_day_name(period_start_day: int) -> str:
    """Name of an anchor weekday (0=Sunday)."""
    return DAY_NAMES[validate_period_start_day(period_start_day)]
