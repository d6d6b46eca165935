from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from ..domain.errors import (
    AlreadyEndedError,
    NotAParticipantError,
    OutOfWindowError,
    ReservationNotFoundError,
    UnknownUserError,
)
from ..domain.participants import Player, build_lineup, display_name, registered_ids
from ..domain.policy import BookingRules, end_for, local_midnight, normalize
from ..domain.repositories import ReservationStore, UserDirectory
from ..domain.services import SlotAvailability, probe_slot, validate_booking
from ..models import Reservation, ReservationParticipant
from ..utils.time import ensure_aware, utc_now


@dataclass(frozen=True)
class ParticipantEntry:
    name: str
    order: int
    user_id: Optional[int] = None
    guest_name: Optional[str] = None


@dataclass(frozen=True)
class ReservationDetails:
    reservation: Reservation
    participants: list[ParticipantEntry]

    @property
    def participant_names(self) -> list[str]:
        return [p.name for p in self.participants]


async def create_reservation(
    store: ReservationStore,
    users: UserDirectory,
    *,
    rules: BookingRules,
    user_id: int,
    starts_at: datetime,
    ends_at: datetime | None = None,
    participant_ids: Iterable[int] = (),
    guest_names: Iterable[str] = (),
    now: datetime | None = None,
) -> ReservationDetails:
    now = normalize(now or utc_now())
    starts_at = normalize(starts_at)
    ends_at = normalize(ends_at) if ends_at is not None else end_for(starts_at, rules)
    lineup = build_lineup(user_id, participant_ids, guest_names)

    await store.lock_court()
    await validate_booking(
        store,
        users,
        rules=rules,
        user_id=user_id,
        starts_at=starts_at,
        ends_at=ends_at,
        now=now,
    )
    await _ensure_registered(users, lineup[1:])

    # A failed participant write is undone by the caller rolling the transaction back.
    reservation = await store.create(starts_at=starts_at, ends_at=ends_at, created_by_id=user_id)
    rows = await store.add_participants(reservation.id, lineup)
    return await _details(users, reservation, rows)


async def move_reservation(
    store: ReservationStore,
    users: UserDirectory,
    *,
    rules: BookingRules,
    reservation_id: int,
    user_id: int,
    starts_at: datetime,
    now: datetime | None = None,
) -> ReservationDetails:
    now = normalize(now or utc_now())
    starts_at = normalize(starts_at)
    ends_at = end_for(starts_at, rules)

    await store.lock_court()
    reservation, rows = await _load_for_change(store, reservation_id, user_id, now, verb="move", past="moved")
    if starts_at < now:
        raise OutOfWindowError(rules.window_days, "Reservations cannot be moved into the past.")

    # Quota is charged to the creator; the reservation itself is not counted.
    await validate_booking(
        store,
        users,
        rules=rules,
        user_id=reservation.created_by_id,
        starts_at=starts_at,
        ends_at=ends_at,
        now=now,
        exclude_reservation_id=reservation.id,
    )

    lineup = [row.as_player() for row in rows]
    new_rows = await _replace_lineup(store, reservation.id, lineup)
    await store.update_interval(reservation, starts_at=starts_at, ends_at=ends_at)
    return await _details(users, reservation, new_rows)


async def edit_participants(
    store: ReservationStore,
    users: UserDirectory,
    *,
    reservation_id: int,
    user_id: int,
    participant_ids: Iterable[int] = (),
    guest_names: Iterable[str] = (),
    now: datetime | None = None,
) -> ReservationDetails:
    """Replace the participant set. The interval is untouched, so no quota or conflict check runs."""
    now = normalize(now or utc_now())
    await store.lock_court()
    reservation, _ = await _load_for_change(store, reservation_id, user_id, now, verb="edit", past="edited")

    lineup = build_lineup(reservation.created_by_id, participant_ids, guest_names)
    await _ensure_registered(users, lineup[1:])
    new_rows = await _replace_lineup(store, reservation.id, lineup)
    return await _details(users, reservation, new_rows)


async def cancel_reservation(
    store: ReservationStore,
    *,
    reservation_id: int,
    user_id: int,
    now: datetime | None = None,
) -> Reservation:
    now = normalize(now or utc_now())
    await store.lock_court()
    reservation, _ = await _load_for_change(store, reservation_id, user_id, now, verb="cancel", past="cancelled")
    await store.delete(reservation)
    return reservation


async def check_slot_available(
    store: ReservationStore,
    users: UserDirectory,
    *,
    rules: BookingRules,
    starts_at: datetime,
    now: datetime | None = None,
) -> SlotAvailability:
    return await probe_slot(store, users, rules=rules, starts_at=normalize(starts_at), now=normalize(now or utc_now()))


async def get_reservation(
    store: ReservationStore,
    users: UserDirectory,
    *,
    reservation_id: int,
) -> ReservationDetails:
    reservation = await store.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError(reservation_id)
    return await _details(users, reservation, await store.list_participants(reservation.id))


async def list_day_reservations(
    store: ReservationStore,
    users: UserDirectory,
    *,
    rules: BookingRules,
    day: date,
) -> list[ReservationDetails]:
    start = local_midnight(day, rules)
    end = local_midnight(day + timedelta(days=1), rules)
    reservations = await store.list_starting_between(start, end)
    return [await _details(users, r, await store.list_participants(r.id)) for r in reservations]


async def list_user_reservations(
    store: ReservationStore,
    users: UserDirectory,
    *,
    user_id: int,
) -> list[ReservationDetails]:
    reservations = await store.list_for_user(user_id)
    return [await _details(users, r, await store.list_participants(r.id)) for r in reservations]


async def _load_for_change(
    store: ReservationStore,
    reservation_id: int,
    user_id: int,
    now: datetime,
    *,
    verb: str,
    past: str,
) -> tuple[Reservation, list[ReservationParticipant]]:
    reservation = await store.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError(reservation_id)
    rows = await store.list_participants(reservation.id)
    if not any(row.user_id == user_id for row in rows):
        raise NotAParticipantError(verb)
    if ensure_aware(reservation.ends_at) <= now:
        raise AlreadyEndedError(past)
    return reservation, rows


async def _ensure_registered(users: UserDirectory, lineup: Sequence[Player]) -> None:
    missing = await users.missing_ids(registered_ids(lineup))
    if missing:
        raise UnknownUserError(missing)


async def _replace_lineup(
    store: ReservationStore,
    reservation_id: int,
    lineup: Sequence[Player],
) -> list[ReservationParticipant]:
    # Delete-all then re-insert; participant row ids are not stable across edits.
    await store.delete_participants(reservation_id)
    return await store.add_participants(reservation_id, lineup)



async def _details(
    users: UserDirectory,
    reservation: Reservation,
    rows: Sequence[ReservationParticipant],
) -> ReservationDetails:
    names = await users.first_names(row.user_id for row in rows if row.user_id is not None)
    ordered = sorted(rows, key=lambda row: row.order)
    return ReservationDetails(
        reservation=reservation,
        participants=[
            ParticipantEntry(
                name=display_name(row.as_player(), names),
                order=row.order,
                user_id=row.user_id,
                guest_name=row.guest_name,
            )
            for row in ordered
        ],
    )
