"""Database setup with SQLAlchemy async."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from duck_racing.config import settings
from duck_racing.errors import StoreUnavailable

engine = create_async_engine(
    settings.database_url,
    echo=settings.log_level == "DEBUG",
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


@asynccontextmanager
async def store_transaction(
    session_maker: async_sessionmaker[AsyncSession],
    timeout: float | None = None,
) -> AsyncIterator[AsyncSession]:
    """Run one all-or-nothing store transaction bounded by ``timeout`` seconds.

    The transaction commits when the block exits normally and rolls back on any
    exception. Timeouts and connection-level failures surface as the retryable
    ``StoreUnavailable``; domain errors raised inside the block pass through.
    """
    if timeout is None:
        timeout = settings.store_timeout
    try:
        async with asyncio.timeout(timeout):
            async with session_maker() as session, session.begin():
                yield session
    except TimeoutError as e:
        raise StoreUnavailable(f"Store did not answer within {timeout:g}s") from e
    except (OperationalError, InterfaceError) as e:
        raise StoreUnavailable(f"Store error: {e.orig or e}") from e


async def init_db() -> None:
    """Initialize database tables (dev only, use Alembic in production)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
