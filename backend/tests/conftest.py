"""Shared fixtures: in-memory implementations of the store protocols."""

from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

import pytest
from courtbook.domain.errors import StoreUnavailableError
from courtbook.domain.participants import Player, RegisteredPlayer
from courtbook.domain.policy import BookingRules
from courtbook.models import Reservation, ReservationParticipant
from courtbook.utils.time import to_utc_naive


class InMemoryReservationStore:
    def __init__(self) -> None:
        self.reservations: dict[int, Reservation] = {}
        self.participants: list[ReservationParticipant] = []
        self.lock_calls = 0
        self.fail_participant_writes = False
        self._ids = count(1)
        self._participant_ids = count(1)

    def seed(
        self,
        created_by_id: int,
        starts_at: datetime,
        *,
        minutes: int = 90,
        lineup: Sequence[Player] = (),
    ) -> Reservation:
        now = to_utc_naive(starts_at)
        reservation = Reservation(
            id=next(self._ids),
            court_id=1,
            starts_at=to_utc_naive(starts_at),
            ends_at=to_utc_naive(starts_at + timedelta(minutes=minutes)),
            created_by_id=created_by_id,
            created_at=now,
            updated_at=now,
        )
        self.reservations[reservation.id] = reservation
        self._insert(reservation.id, [RegisteredPlayer(created_by_id), *lineup], 0)
        return reservation

    def _insert(self, reservation_id: int, lineup: Sequence[Player], start_order: int) -> list[ReservationParticipant]:
        rows = []
        for index, player in enumerate(lineup):
            row = ReservationParticipant.from_player(
                reservation_id=reservation_id, player=player, order=start_order + index
            )
            row.id = next(self._participant_ids)
            rows.append(row)
        self.participants.extend(rows)
        return rows

    def _ordered(self) -> list[Reservation]:
        return sorted(self.reservations.values(), key=lambda r: (r.starts_at, r.id))

    async def lock_court(self) -> None:
        self.lock_calls += 1

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return self.reservations.get(reservation_id)

    async def find_overlapping(
        self,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_id: Optional[int] = None,
    ) -> Optional[Reservation]:
        start, end = to_utc_naive(starts_at), to_utc_naive(ends_at)
        for reservation in self._ordered():
            if reservation.id == exclude_id:
                continue
            if reservation.starts_at < end and reservation.ends_at > start:
                return reservation
        return None

    async def count_created_between(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        *,
        exclude_id: Optional[int] = None,
    ) -> int:
        lo, hi = to_utc_naive(start), to_utc_naive(end)
        return sum(
            1
            for r in self.reservations.values()
            if r.created_by_id == user_id and lo <= r.starts_at < hi and r.id != exclude_id
        )

    async def list_starting_between(self, start: datetime, end: datetime) -> list[Reservation]:
        lo, hi = to_utc_naive(start), to_utc_naive(end)
        return [r for r in self._ordered() if lo <= r.starts_at < hi]

    async def find_active_at(self, instant: datetime) -> Optional[Reservation]:
        moment = to_utc_naive(instant)
        for reservation in self._ordered():
            if reservation.starts_at <= moment < reservation.ends_at:
                return reservation
        return None

    async def list_for_user(self, user_id: int) -> list[Reservation]:
        joined = {p.reservation_id for p in self.participants if p.user_id == user_id}
        return [r for r in self._ordered() if r.created_by_id == user_id or r.id in joined]

    async def create(self, *, starts_at: datetime, ends_at: datetime, created_by_id: int) -> Reservation:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        reservation = Reservation(
            id=next(self._ids),
            court_id=1,
            starts_at=to_utc_naive(starts_at),
            ends_at=to_utc_naive(ends_at),
            created_by_id=created_by_id,
            created_at=now,
            updated_at=now,
        )
        self.reservations[reservation.id] = reservation
        return reservation

    async def update_interval(self, reservation: Reservation, *, starts_at: datetime, ends_at: datetime) -> Reservation:
        reservation.starts_at = to_utc_naive(starts_at)
        reservation.ends_at = to_utc_naive(ends_at)
        return reservation

    async def delete(self, reservation: Reservation) -> None:
        self.reservations.pop(reservation.id, None)
        self.participants = [p for p in self.participants if p.reservation_id != reservation.id]

    async def list_participants(self, reservation_id: int) -> list[ReservationParticipant]:
        rows = [p for p in self.participants if p.reservation_id == reservation_id]
        return sorted(rows, key=lambda p: (p.order, p.id))

    async def add_participants(
        self,
        reservation_id: int,
        lineup: Sequence[Player],
        *,
        start_order: int = 0,
    ) -> list[ReservationParticipant]:
        if self.fail_participant_writes:
            raise StoreUnavailableError()
        return self._insert(reservation_id, lineup, start_order)

    async def delete_participants(self, reservation_id: int) -> None:
        self.participants = [p for p in self.participants if p.reservation_id != reservation_id]


class InMemoryUserDirectory:
    def __init__(self, names: dict[int, str]) -> None:
        self.names = names

    async def first_names(self, user_ids: Iterable[int]) -> dict[int, str]:
        return {user_id: self.names[user_id] for user_id in user_ids if user_id in self.names}

    async def missing_ids(self, user_ids: Iterable[int]) -> list[int]:
        return [user_id for user_id in user_ids if user_id not in self.names]


@pytest.fixture
def store() -> InMemoryReservationStore:
    return InMemoryReservationStore()


@pytest.fixture
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory({1: "Ana", 2: "Bruno", 3: "Carla", 4: "Davi", 5: "Eva"})


@pytest.fixture
def rules() -> BookingRules:
    return BookingRules(tz=ZoneInfo("UTC"))


@pytest.fixture
def now() -> datetime:
    # Monday 2024-01-01; its Sunday-start week runs 2023-12-31 .. 2024-01-06
    return datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
