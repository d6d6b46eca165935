from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol, Sequence

from ..models import Reservation, ReservationParticipant
from .participants import Player


class ReservationStore(Protocol):
    """Persisted reservations of the configured court.

    Datetime arguments are timezone-aware; returned rows hold naive UTC values.
    Writes run inside the caller's transaction and are undone by rolling it back.
    """

    async def lock_court(self) -> None: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def find_overlapping(
        self,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_id: int | None = None,
    ) -> Reservation | None: ...

    async def count_created_between(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        *,
        exclude_id: int | None = None,
    ) -> int: ...

    async def list_starting_between(self, start: datetime, end: datetime) -> list[Reservation]: ...

    async def find_active_at(self, instant: datetime) -> Reservation | None: ...

    async def list_for_user(self, user_id: int) -> list[Reservation]: ...

    async def create(self, *, starts_at: datetime, ends_at: datetime, created_by_id: int) -> Reservation: ...

    async def update_interval(
        self,
        reservation: Reservation,
        *,
        starts_at: datetime,
        ends_at: datetime,
    ) -> Reservation: ...

    async def delete(self, reservation: Reservation) -> None: ...

    async def list_participants(self, reservation_id: int) -> list[ReservationParticipant]: ...

    async def add_participants(
        self,
        reservation_id: int,
        lineup: Sequence[Player],
        *,
        start_order: int = 0,
    ) -> list[ReservationParticipant]: ...

    async def delete_participants(self, reservation_id: int) -> None: ...


class UserDirectory(Protocol):
    async def first_names(self, user_ids: Iterable[int]) -> dict[int, str]: ...

    async def missing_ids(self, user_ids: Iterable[int]) -> list[int]: ...
