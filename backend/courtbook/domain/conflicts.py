"""Overlap detection between a candidate slot and persisted reservations."""

from __future__ import annotations

from datetime import datetime

from ..models import Reservation
from ..utils.time import utc_naive_to_local
from .errors import SlotConflictError
from .participants import display_name
from .policy import BookingRules, normalize
from .repositories import ReservationStore, UserDirectory


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open intervals: touching ends (`end_a == start_b`) do not overlap."""
    return start_a < end_b and end_a > start_b


async def find_conflict(
    store: ReservationStore,
    starts_at: datetime,
    ends_at: datetime,
    *,
    exclude_reservation_id: int | None = None,
) -> Reservation | None:
    """Return the first stored reservation overlapping `[starts_at, ends_at)`, if any."""
    return await store.find_overlapping(
        normalize(starts_at),
        normalize(ends_at),
        exclude_id=exclude_reservation_id,
    )


async def participant_names(
    store: ReservationStore,
    users: UserDirectory,
    reservation_id: int,
) -> list[str]:
    rows = await store.list_participants(reservation_id)
    players = [row.as_player() for row in rows]
    names = await users.first_names(row.user_id for row in rows if row.user_id is not None)
    return [display_name(player, names) for player in players]


async def describe_conflict(
    store: ReservationStore,
    users: UserDirectory,
    reservation: Reservation,
    rules: BookingRules,
) -> SlotConflictError:
    return SlotConflictError(
        reservation_id=reservation.id,
        participants=await participant_names(store, users, reservation.id),
        starts_at=utc_naive_to_local(reservation.starts_at, rules.tz),
        ends_at=utc_naive_to_local(reservation.ends_at, rules.tz),
    )
