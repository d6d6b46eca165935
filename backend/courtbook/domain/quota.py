"""Per-creator booking quotas.

Quotas count reservations by their creator only; being added as a participant
to somebody else's booking never uses up a slot of the participant's quota.
The candidate reservation's own start decides which day and week are counted.
"""

from __future__ import annotations

from datetime import datetime

from .policy import BookingRules, day_bounds, week_bounds
from .repositories import ReservationStore


async def count_same_day(
    store: ReservationStore,
    user_id: int,
    candidate: datetime,
    rules: BookingRules,
    *,
    exclude_reservation_id: int | None = None,
) -> int:
    start, end = day_bounds(candidate, rules)
    return await store.count_created_between(user_id, start, end, exclude_id=exclude_reservation_id)


async def count_same_week(
    store: ReservationStore,
    user_id: int,
    candidate: datetime,
    rules: BookingRules,
    *,
    exclude_reservation_id: int | None = None,
) -> int:
    start, end = week_bounds(candidate, rules)
    return await store.count_created_between(user_id, start, end, exclude_id=exclude_reservation_id)


async def check_daily_quota(
    store: ReservationStore,
    user_id: int,
    candidate: datetime,
    rules: BookingRules,
    *,
    exclude_reservation_id: int | None = None,
) -> bool:
    """True when `user_id` may create one more reservation on the candidate's day."""
    existing = await count_same_day(
        store, user_id, candidate, rules, exclude_reservation_id=exclude_reservation_id
    )
    return existing < rules.daily_limit


async def check_weekly_quota(
    store: ReservationStore,
    user_id: int,
    candidate: datetime,
    rules: BookingRules,
    *,
    exclude_reservation_id: int | None = None,
) -> bool:
    """True when `user_id` may create one more reservation in the candidate's Sunday-start week."""
    existing = await count_same_week(
        store, user_id, candidate, rules, exclude_reservation_id=exclude_reservation_id
    )
    return existing < rules.weekly_limit
