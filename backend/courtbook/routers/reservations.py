import logging
from datetime import date, datetime
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import (
    get_booking_rules,
    get_current_user_id,
    get_reservation_store,
    get_session,
    get_user_directory,
)
from ..domain.errors import ErrorKind, ReservationError, StoreUnavailableError
from ..domain.policy import BookingRules
from ..domain.repositories import ReservationStore, UserDirectory
from ..schemas import (
    ParticipantsUpdate,
    ReservationCancelled,
    ReservationCreate,
    ReservationMove,
    ReservationRead,
    SlotAvailabilityRead,
)
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import emit_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["reservations"])

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.OUT_OF_WINDOW: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_DURATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SLOT_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.DAILY_LIMIT_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorKind.WEEKLY_LIMIT_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_ENDED: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_A_PARTICIPANT: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_status_for(kind: ErrorKind) -> int:
    return _STATUS_BY_KIND[kind]


def _http_error(exc: ReservationError) -> HTTPException:
    return HTTPException(status_code=http_status_for(exc.kind), detail=exc.as_dict())


def _store_failure(exc: SQLAlchemyError) -> HTTPException:
    logger.error("reservation transaction failed: %s", exc)
    return _http_error(StoreUnavailableError())


def _require_timezone(value: datetime, name: str) -> None:
    if value.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} must have timezone")


def _audit(**kwargs: Any) -> None:
    try:
        emit_audit_log(**kwargs)
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="failed to record audit log",
        ) from exc


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    store: ReservationStore = Depends(get_reservation_store),
    users: UserDirectory = Depends(get_user_directory),
    rules: BookingRules = Depends(get_booking_rules),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    _require_timezone(payload.starts_at, "starts_at")
    if payload.ends_at is not None:
        _require_timezone(payload.ends_at, "ends_at")
    try:
        async with session.begin():
            details = await reservation_usecase.create_reservation(
                store,
                users,
                rules=rules,
                user_id=user_id,
                starts_at=payload.starts_at,
                ends_at=payload.ends_at,
                participant_ids=payload.participant_ids,
                guest_names=payload.guest_names,
            )
    except ReservationError as exc:
        raise _http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise _store_failure(exc) from exc

    reservation = details.reservation
    _audit(
        action="reservation.created",
        reservation_id=reservation.id,
        user_id=user_id,
        created_by_id=reservation.created_by_id,
        starts_at=reservation.starts_at,
        ends_at=reservation.ends_at,
        participants=details.participant_names,
    )
    return ReservationRead.from_details(details, tz=rules.tz)


@router.get("/reservations/availability", response_model=SlotAvailabilityRead)
async def check_slot_available(
    starts_at: datetime = Query(..., description="Candidate start (ISO 8601 with timezone)"),
    store: ReservationStore = Depends(get_reservation_store),
    users: UserDirectory = Depends(get_user_directory),
    rules: BookingRules = Depends(get_booking_rules),
    user_id: int = Depends(get_current_user_id),
) -> SlotAvailabilityRead:
    _require_timezone(starts_at, "starts_at")
    try:
        result = await reservation_usecase.check_slot_available(store, users, rules=rules, starts_at=starts_at)
    except ReservationError as exc:
        raise _http_error(exc) from exc
    return SlotAvailabilityRead.from_result(result)


@router.get("/reservations", response_model=List[ReservationRead])
async def list_day_reservations(
    day: date = Query(..., alias="date", description="Local calendar day (YYYY-MM-DD)"),
    store: ReservationStore = Depends(get_reservation_store),
    users: UserDirectory = Depends(get_user_directory),
    rules: BookingRules = Depends(get_booking_rules),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    try:
        rows = await reservation_usecase.list_day_reservations(store, users, rules=rules, day=day)
    except ReservationError as exc:
        raise _http_error(exc) from exc
    return [ReservationRead.from_details(details, tz=rules.tz) for details in rows]


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    store: ReservationStore = Depends(get_reservation_store),
    users: UserDirectory = Depends(get_user_directory),
    rules: BookingRules = Depends(get_booking_rules),
    user_id: int = Depends(get_current_user_id),
) -> list[ReservationRead]:
    try:
        rows = await reservation_usecase.list_user_reservations(store, users, user_id=user_id)
    except ReservationError as exc:
        raise _http_error(exc) from exc
    return [ReservationRead.from_details(details, tz=rules.tz) for details in rows]


@router.get("/reservations/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    store: ReservationStore = Depends(get_reservation_store),
    users: UserDirectory = Depends(get_user_directory),
    rules: BookingRules = Depends(get_booking_rules),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    try:
        details = await reservation_usecase.get_reservation(store, users, reservation_id=reservation_id)
    except ReservationError as exc:
        raise _http_error(exc) from exc
    return ReservationRead.from_details(details, tz=rules.tz)


@router.post("/reservations/{reservation_id}/move", response_model=ReservationRead)
async def move_reservation(
    payload: ReservationMove,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    store: ReservationStore = Depends(get_reservation_store),
    users: UserDirectory = Depends(get_user_directory),
    rules: BookingRules = Depends(get_booking_rules),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    _require_timezone(payload.starts_at, "starts_at")
    try:
        async with session.begin():
            details = await reservation_usecase.move_reservation(
                store,
                users,
                rules=rules,
                reservation_id=reservation_id,
                user_id=user_id,
                starts_at=payload.starts_at,
            )
    except ReservationError as exc:
        raise _http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise _store_failure(exc) from exc

    reservation = details.reservation
    _audit(
        action="reservation.moved",
        reservation_id=reservation.id,
        user_id=user_id,
        created_by_id=reservation.created_by_id,
        starts_at=reservation.starts_at,
        ends_at=reservation.ends_at,
    )
    return ReservationRead.from_details(details, tz=rules.tz)


@router.put("/reservations/{reservation_id}/participants", response_model=ReservationRead)
async def edit_participants(
    payload: ParticipantsUpdate,
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    store: ReservationStore = Depends(get_reservation_store),
    users: UserDirectory = Depends(get_user_directory),
    rules: BookingRules = Depends(get_booking_rules),
    user_id: int = Depends(get_current_user_id),
) -> ReservationRead:
    try:
        async with session.begin():
            details = await reservation_usecase.edit_participants(
                store,
                users,
                reservation_id=reservation_id,
                user_id=user_id,
                participant_ids=payload.participant_ids,
                guest_names=payload.guest_names,
            )
    except ReservationError as exc:
        raise _http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise _store_failure(exc) from exc

    reservation = details.reservation
    _audit(
        action="reservation.participants_replaced",
        reservation_id=reservation.id,
        user_id=user_id,
        created_by_id=reservation.created_by_id,
        starts_at=reservation.starts_at,
        ends_at=reservation.ends_at,
        participants=details.participant_names,
    )
    return ReservationRead.from_details(details, tz=rules.tz)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationCancelled)
async def cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    store: ReservationStore = Depends(get_reservation_store),
    user_id: int = Depends(get_current_user_id),
) -> ReservationCancelled:
    try:
        async with session.begin():
            cancelled = await reservation_usecase.cancel_reservation(
                store,
                reservation_id=reservation_id,
                user_id=user_id,
            )
    except ReservationError as exc:
        raise _http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise _store_failure(exc) from exc

    _audit(
        action="reservation.cancelled",
        reservation_id=cancelled.id,
        user_id=user_id,
        created_by_id=cancelled.created_by_id,
        starts_at=cancelled.starts_at,
        ends_at=cancelled.ends_at,
    )
    return ReservationCancelled(reservation_id=cancelled.id)
