from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_serializer

from .domain.errors import ErrorKind
from .domain.services import SlotAvailability
from .usecases.court import CourtStatus
from .usecases.reservations import ParticipantEntry, ReservationDetails
from .utils.time import utc_naive_to_local


class ReservationCreate(BaseModel):
    starts_at: datetime
    ends_at: Optional[datetime] = None
    participant_ids: list[int] = Field(default_factory=list)
    guest_names: list[str] = Field(default_factory=list)


class ReservationMove(BaseModel):
    starts_at: datetime


class ParticipantsUpdate(BaseModel):
    participant_ids: list[int] = Field(default_factory=list)
    guest_names: list[str] = Field(default_factory=list)


class ParticipantRead(BaseModel):
    name: str
    order: int
    user_id: Optional[int] = None
    guest_name: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: ParticipantEntry) -> "ParticipantRead":
        return cls(name=entry.name, order=entry.order, user_id=entry.user_id, guest_name=entry.guest_name)


class ReservationRead(BaseModel):
    reservation_id: int
    created_by_id: int
    starts_at: datetime
    ends_at: datetime
    participants: list[ParticipantRead]

    @field_serializer("starts_at", "ends_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_details(cls, details: ReservationDetails, *, tz: ZoneInfo) -> "ReservationRead":
        reservation = details.reservation
        return cls(
            reservation_id=reservation.id,
            created_by_id=reservation.created_by_id,
            starts_at=utc_naive_to_local(reservation.starts_at, tz),
            ends_at=utc_naive_to_local(reservation.ends_at, tz),
            participants=[ParticipantRead.from_entry(p) for p in details.participants],
        )


class ReservationCancelled(BaseModel):
    ok: bool = True
    reservation_id: int


class SlotAvailabilityRead(BaseModel):
    available: bool
    reason: Optional[str] = None
    kind: Optional[ErrorKind] = None
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: SlotAvailability) -> "SlotAvailabilityRead":
        return cls(available=result.available, reason=result.reason, kind=result.kind, details=result.details)


class CourtStatusRead(BaseModel):
    is_occupied: bool
    reservation: Optional[ReservationRead] = None

    @classmethod
    def from_status(cls, court: CourtStatus, *, tz: ZoneInfo) -> "CourtStatusRead":
        if court.current is None:
            return cls(is_occupied=court.is_occupied)
        return cls(is_occupied=court.is_occupied, reservation=ReservationRead.from_details(court.current, tz=tz))
