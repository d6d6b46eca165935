from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .conflicts import describe_conflict, find_conflict
from .errors import (
    DailyLimitExceededError,
    ErrorKind,
    InvalidDurationError,
    OutOfWindowError,
    ReservationError,
    WeeklyLimitExceededError,
)
from .policy import BookingRules, booking_window, end_for, has_fixed_duration
from .quota import check_daily_quota, check_weekly_quota
from .repositories import ReservationStore, UserDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotAvailability:
    available: bool
    reason: str | None = None
    kind: ErrorKind | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def rejected(cls, error: ReservationError) -> "SlotAvailability":
        details = {k: v for k, v in error.as_dict().items() if k not in ("kind", "message")}
        return cls(available=False, reason=error.message, kind=error.kind, details=details)


def _duration_minutes(rules: BookingRules) -> int:
    return int(rules.duration.total_seconds() // 60)


async def validate_booking(
    store: ReservationStore,
    users: UserDirectory,
    *,
    rules: BookingRules,
    user_id: int,
    starts_at: datetime,
    ends_at: datetime,
    now: datetime,
    exclude_reservation_id: int | None = None,
    check_quota: bool = True,
) -> None:
    """
    Decide whether `user_id` may hold `[starts_at, ends_at)` on the court.

    Checks run in a fixed order and stop at the first failure, which is raised:
    window, duration, conflict, daily quota, weekly quota. Returning normally
    means the booking is accepted. `exclude_reservation_id` removes the
    reservation being moved from both the conflict and the quota counts.
    """
    if not booking_window(now, rules).contains(starts_at):
        raise OutOfWindowError(rules.window_days)

    if not has_fixed_duration(starts_at, ends_at, rules):
        raise InvalidDurationError(_duration_minutes(rules))

    conflict = await find_conflict(store, starts_at, ends_at, exclude_reservation_id=exclude_reservation_id)
    if conflict is not None:
        logger.info("slot %s-%s conflicts with reservation %s", starts_at, ends_at, conflict.id)
        raise await describe_conflict(store, users, conflict, rules)

    if not check_quota:
        return

    if not await check_daily_quota(
        store, user_id, starts_at, rules, exclude_reservation_id=exclude_reservation_id
    ):
        raise DailyLimitExceededError(rules.daily_limit)

    if not await check_weekly_quota(
        store, user_id, starts_at, rules, exclude_reservation_id=exclude_reservation_id
    ):
        raise WeeklyLimitExceededError(rules.weekly_limit)


async def probe_slot(
    store: ReservationStore,
    users: UserDirectory,
    *,
    rules: BookingRules,
    starts_at: datetime,
    now: datetime,
) -> SlotAvailability:
    """Window and conflict checks only; quotas are enforced when booking."""
    if not booking_window(now, rules).contains(starts_at):
        return SlotAvailability.rejected(OutOfWindowError(rules.window_days))

    conflict = await find_conflict(store, starts_at, end_for(starts_at, rules))
    if conflict is not None:
        return SlotAvailability.rejected(await describe_conflict(store, users, conflict, rules))
    return SlotAvailability(available=True)
