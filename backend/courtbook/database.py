from datetime import datetime, timezone
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings
from .domain.errors import StoreUnavailableError
from .models import Base, Court


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    if not settings.database_url:
        raise StoreUnavailableError("The reservation store is not configured.")
    return create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), expire_on_commit=False, class_=AsyncSession)


async def create_schema(*, court_id: int, court_name: str = "Court") -> None:
    """Create the tables and the court row whose lock serializes bookings."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with get_sessionmaker()() as session, session.begin():
        if await session.get(Court, court_id) is None:
            session.add(
                Court(
                    id=court_id,
                    name=court_name,
                    created_at=datetime.now(timezone.utc).replace(tzinfo=None),
                )
            )
