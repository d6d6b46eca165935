from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..domain.policy import normalize
from ..domain.repositories import ReservationStore, UserDirectory
from ..utils.time import utc_now
from .reservations import ReservationDetails, get_reservation


@dataclass(frozen=True)
class CourtStatus:
    is_occupied: bool
    current: Optional[ReservationDetails] = None


async def court_status(
    store: ReservationStore,
    users: UserDirectory,
    *,
    now: datetime | None = None,
) -> CourtStatus:
    """Derived on every call from the reservation whose `[starts_at, ends_at)` holds `now`."""
    active = await store.find_active_at(normalize(now or utc_now()))
    if active is None:
        return CourtStatus(is_occupied=False)
    details = await get_reservation(store, users, reservation_id=active.id)
    return CourtStatus(is_occupied=True, current=details)
