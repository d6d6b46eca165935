import logging
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import get_sessionmaker
from .domain.errors import StoreUnavailableError
from .domain.policy import BookingRules, rules_from_settings
from .infrastructure.repositories import SqlAlchemyReservationStore, SqlAlchemyUserDirectory
from .models import User
from .utils.auth import decode_access_token, parse_bearer

logger = logging.getLogger(__name__)

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with get_sessionmaker()() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers=_BEARER_CHALLENGE)


async def get_current_user_id(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> int:
    settings = get_settings()
    try:
        token = parse_bearer(authorization)
        user_id = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise _unauthorized(str(exc)) from exc

    try:
        found = await session.scalar(select(User.id).where(User.id == user_id))
        # The lookup autobegins a transaction; write routes open their own with session.begin().
        await session.rollback()
    except SQLAlchemyError as exc:
        logger.error("user lookup failed: %s", exc)
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=StoreUnavailableError().as_dict(),
        ) from exc
    if found is None:
        raise _unauthorized("user not found")
    return user_id


def get_booking_rules() -> BookingRules:
    settings = get_settings()
    return rules_from_settings(
        court_timezone=settings.court_timezone,
        reservation_minutes=settings.reservation_minutes,
        booking_window_days=settings.booking_window_days,
        daily_limit=settings.daily_limit,
        weekly_limit=settings.weekly_limit,
    )


async def get_reservation_store(session: AsyncSession = Depends(get_session)) -> SqlAlchemyReservationStore:
    return SqlAlchemyReservationStore(session, court_id=get_settings().court_id)


async def get_user_directory(session: AsyncSession = Depends(get_session)) -> SqlAlchemyUserDirectory:
    return SqlAlchemyUserDirectory(session)
