from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_booking_rules, get_current_user_id, get_reservation_store, get_user_directory
from ..domain.errors import ReservationError
from ..domain.policy import BookingRules
from ..domain.repositories import ReservationStore, UserDirectory
from ..schemas import CourtStatusRead
from ..usecases import court as court_usecase
from .reservations import http_status_for

router = APIRouter(prefix="/court", tags=["court"], dependencies=[Depends(get_current_user_id)])


@router.get("/status", response_model=CourtStatusRead)
async def get_court_status(
    store: ReservationStore = Depends(get_reservation_store),
    users: UserDirectory = Depends(get_user_directory),
    rules: BookingRules = Depends(get_booking_rules),
) -> CourtStatusRead:
    try:
        current = await court_usecase.court_status(store, users)
    except ReservationError as exc:
        raise HTTPException(status_code=http_status_for(exc.kind), detail=exc.as_dict()) from exc
    return CourtStatusRead.from_status(current, tz=rules.tz)
