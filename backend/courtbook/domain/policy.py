"""Booking window, fixed duration and calendar boundaries for the court.

Every function here is pure. Instants handed in may carry any timezone; the
calendar notions (day, week) are evaluated in the court's local timezone,
while durations are computed on UTC-normalized values so that a daylight
saving shift never stretches or shrinks a slot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from ..utils.time import ensure_aware

FIXED_DURATION = timedelta(minutes=90)
DEFAULT_TIMEZONE = ZoneInfo("America/Sao_Paulo")

_END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class BookingRules:
    tz: ZoneInfo = field(default=DEFAULT_TIMEZONE)
    duration: timedelta = FIXED_DURATION
    window_days: int = 7
    daily_limit: int = 1
    weekly_limit: int = 4


@dataclass(frozen=True)
class BookingWindow:
    min_date: datetime
    max_date: datetime

    def contains(self, instant: datetime) -> bool:
        return self.min_date <= normalize(instant) <= self.max_date


def normalize(instant: datetime) -> datetime:
    """Return `instant` as an aware UTC datetime (naive input is taken as UTC)."""
    return ensure_aware(instant).astimezone(timezone.utc)


def local_date(instant: datetime, rules: BookingRules) -> date:
    return normalize(instant).astimezone(rules.tz).date()


def local_midnight(day: date, rules: BookingRules) -> datetime:
    return datetime.combine(day, time.min, tzinfo=rules.tz)


def booking_window(now: datetime, rules: BookingRules) -> BookingWindow:
    """Today 00:00 through 23:59:59.999 of the last bookable day, local time."""
    today = local_date(now, rules)
    last_day = today + timedelta(days=rules.window_days - 1)
    return BookingWindow(
        min_date=local_midnight(today, rules),
        max_date=datetime.combine(last_day, _END_OF_DAY, tzinfo=rules.tz),
    )


def end_for(starts_at: datetime, rules: BookingRules) -> datetime:
    return normalize(starts_at) + rules.duration


def has_fixed_duration(starts_at: datetime, ends_at: datetime, rules: BookingRules) -> bool:
    return normalize(ends_at) - normalize(starts_at) == rules.duration


def day_bounds(instant: datetime, rules: BookingRules) -> tuple[datetime, datetime]:
    """Half-open `[start, end)` of the local calendar day containing `instant`."""
    day = local_date(instant, rules)
    return local_midnight(day, rules), local_midnight(day + timedelta(days=1), rules)


def week_bounds(instant: datetime, rules: BookingRules) -> tuple[datetime, datetime]:
    """Half-open `[start, end)` of the Sunday-start local week containing `instant`."""
    day = local_date(instant, rules)
    # date.weekday() is Monday=0 .. Sunday=6
    sunday = day - timedelta(days=(day.weekday() + 1) % 7)
    return local_midnight(sunday, rules), local_midnight(sunday + timedelta(days=7), rules)


def rules_from_settings(
    *,
    court_timezone: str,
    reservation_minutes: int,
    booking_window_days: int,
    daily_limit: int,
    weekly_limit: int,
) -> BookingRules:
    return BookingRules(
        tz=ZoneInfo(court_timezone),
        duration=timedelta(minutes=reservation_minutes),
        window_days=booking_window_days,
        daily_limit=daily_limit,
        weekly_limit=weekly_limit,
    )
