"""
Database engine and session management.

Provides async SQLAlchemy engine and session factory for FastAPI, and the
translation of connectivity failures into StorageUnavailableError.
"""

import functools
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardkeep.config import settings
from cardkeep.models.db import Base
from cardkeep.models.failure import StorageUnavailableError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

# Errors that mean the database is unreachable or busy, not that the request is wrong
STORAGE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


def engine_options(database_url: str, timeout: float) -> dict[str, Any]:
    """
    Keyword arguments for create_async_engine that bound every storage call.

    SQLite has no pool checkout to time out on, so the limit becomes the
    driver's busy timeout instead.
    """
    if database_url.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout}}
    return {"pool_pre_ping": True, "pool_timeout": timeout}


# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **engine_options(settings.database_url, settings.database_timeout),
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    One session is one transaction: committed when the request succeeds,
    rolled back otherwise.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


def guard_storage(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    """Re-raise connectivity and timeout failures as StorageUnavailableError."""

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except STORAGE_ERRORS as e:
            logger.error("Storage unavailable during %s: %s", func.__name__, e)
            raise StorageUnavailableError(detail=type(e).__name__) from e

    return wrapper


async def init_db() -> None:
    """
    Initialize database tables.

    Creates all tables defined in the ORM models.
    Should be called once at application startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db() -> None:
    """
    Drop all database tables.

    WARNING: Destroys all data. Use only for testing.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
