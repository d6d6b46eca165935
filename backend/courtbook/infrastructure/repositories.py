from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Sequence

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import StoreUnavailableError
from ..domain.participants import Player
from ..domain.repositories import ReservationStore, UserDirectory
from ..models import Court, Reservation, ReservationParticipant, User
from ..utils.time import to_utc_naive

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("reservation store failed during %s: %s", operation, exc)
        raise StoreUnavailableError() from exc


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyReservationStore(ReservationStore):
    def __init__(self, session: AsyncSession, *, court_id: int) -> None:
        self.session = session
        self.court_id = court_id

    def _on_court(self) -> Select[tuple[Reservation]]:
        return select(Reservation).where(Reservation.court_id == self.court_id)

    async def lock_court(self) -> None:
        # Serializes every booking write on the court until the transaction ends.
        with _store_errors("lock_court"):
            locked = await self.session.scalar(
                select(Court.id).where(Court.id == self.court_id).with_for_update()
            )
        if locked is None:
            raise StoreUnavailableError(f"court {self.court_id} is not provisioned")

    async def get(self, reservation_id: int) -> Reservation | None:
        with _store_errors("get"):
            result = await self.session.scalar(self._on_court().where(Reservation.id == reservation_id))
        return result if isinstance(result, Reservation) else None

    async def find_overlapping(
        self,
        starts_at: datetime,
        ends_at: datetime,
        *,
        exclude_id: int | None = None,
    ) -> Reservation | None:
        stmt = self._on_court().where(
            Reservation.starts_at < to_utc_naive(ends_at),
            Reservation.ends_at > to_utc_naive(starts_at),
        )
        if exclude_id is not None:
            stmt = stmt.where(Reservation.id != exclude_id)
        with _store_errors("find_overlapping"):
            result = await self.session.scalar(stmt.order_by(Reservation.starts_at).limit(1))
        return result if isinstance(result, Reservation) else None

    async def count_created_between(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        *,
        exclude_id: int | None = None,
    ) -> int:
        stmt = select(func.count(Reservation.id)).where(
            Reservation.court_id == self.court_id,
            Reservation.created_by_id == user_id,
            Reservation.starts_at >= to_utc_naive(start),
            Reservation.starts_at < to_utc_naive(end),
        )
        if exclude_id is not None:
            stmt = stmt.where(Reservation.id != exclude_id)
        with _store_errors("count_created_between"):
            return int(await self.session.scalar(stmt) or 0)

    async def list_starting_between(self, start: datetime, end: datetime) -> List[Reservation]:
        stmt = (
            self._on_court()
            .where(
                Reservation.starts_at >= to_utc_naive(start),
                Reservation.starts_at < to_utc_naive(end),
            )
            .order_by(Reservation.starts_at)
        )
        with _store_errors("list_starting_between"):
            return list((await self.session.scalars(stmt)).all())

    async def find_active_at(self, instant: datetime) -> Reservation | None:
        at = to_utc_naive(instant)
        stmt = self._on_court().where(Reservation.starts_at <= at, Reservation.ends_at > at).limit(1)
        with _store_errors("find_active_at"):
            result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def list_for_user(self, user_id: int) -> List[Reservation]:
        joined = select(ReservationParticipant.reservation_id).where(ReservationParticipant.user_id == user_id)
        stmt = (
            self._on_court()
            .where(or_(Reservation.created_by_id == user_id, Reservation.id.in_(joined)))
            .order_by(Reservation.starts_at)
        )
        with _store_errors("list_for_user"):
            return list((await self.session.scalars(stmt)).all())

    async def create(self, *, starts_at: datetime, ends_at: datetime, created_by_id: int) -> Reservation:
        now = _utc_now_naive()
        reservation = Reservation(
            court_id=self.court_id,
            starts_at=to_utc_naive(starts_at),
            ends_at=to_utc_naive(ends_at),
            created_by_id=created_by_id,
            created_at=now,
            updated_at=now,
        )
        with _store_errors("create"):
            self.session.add(reservation)
            await self.session.flush()
        return reservation

    async def update_interval(
        self,
        reservation: Reservation,
        *,
        starts_at: datetime,
        ends_at: datetime,
    ) -> Reservation:
        reservation.starts_at = to_utc_naive(starts_at)
        reservation.ends_at = to_utc_naive(ends_at)
        reservation.updated_at = _utc_now_naive()
        with _store_errors("update_interval"):
            self.session.add(reservation)
            await self.session.flush()
        return reservation

    async def delete(self, reservation: Reservation) -> None:
        with _store_errors("delete"):
            await self.session.execute(
                delete(ReservationParticipant).where(ReservationParticipant.reservation_id == reservation.id)
            )
            await self.session.delete(reservation)
            await self.session.flush()

    async def list_participants(self, reservation_id: int) -> List[ReservationParticipant]:
        stmt = (
            select(ReservationParticipant)
            .where(ReservationParticipant.reservation_id == reservation_id)
            .order_by(ReservationParticipant.order, ReservationParticipant.id)
        )
        with _store_errors("list_participants"):
            return list((await self.session.scalars(stmt)).all())

    async def add_participants(
        self,
        reservation_id: int,
        lineup: Sequence[Player],
        *,
        start_order: int = 0,
    ) -> List[ReservationParticipant]:
        rows = [
            ReservationParticipant.from_player(reservation_id=reservation_id, player=player, order=start_order + index)
            for index, player in enumerate(lineup)
        ]
        with _store_errors("add_participants"):
            self.session.add_all(rows)
            await self.session.flush()
        return rows

    async def delete_participants(self, reservation_id: int) -> None:
        with _store_errors("delete_participants"):
            await self.session.execute(
                delete(ReservationParticipant).where(ReservationParticipant.reservation_id == reservation_id)
            )


class SqlAlchemyUserDirectory(UserDirectory):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def first_names(self, user_ids: Iterable[int]) -> dict[int, str]:
        ids = set(user_ids)
        if not ids:
            return {}
        with _store_errors("first_names"):
            rows = await self.session.execute(select(User.id, User.first_name).where(User.id.in_(ids)))
        return {int(user_id): first_name for user_id, first_name in rows.all()}

    async def missing_ids(self, user_ids: Iterable[int]) -> List[int]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        with _store_errors("missing_ids"):
            found = set((await self.session.scalars(select(User.id).where(User.id.in_(ids)))).all())
        return [user_id for user_id in ids if user_id not in found]
