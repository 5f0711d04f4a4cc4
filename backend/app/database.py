"""Database engine, session factory, and declarative base.

All CRM tables (roles, profiles, leads, opportunities, customers) share a
single DeclarativeBase. Row-level visibility is the store's concern; the
scoped accessors only ever narrow what a query may return.
"""

import asyncio
import logging
from contextlib import contextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.middleware.exceptions import StoreUnavailableError

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Yield a session; commit on success, roll back on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Store failure translation ───────────────────────────────

# Failures meaning "the store could not answer" (not constraint violations)
STORE_ERRORS = (
    OperationalError,
    InterfaceError,
    PoolTimeoutError,
    OSError,
    asyncio.TimeoutError,
)


@contextmanager
def store_errors(operation: str):
    """Translate connectivity failures inside the block into StoreUnavailableError.

    Usage:
        with store_errors("list leads"):
            result = await db.execute(query)
    """
    try:
        yield
    except STORE_ERRORS as e:
        logger.warning(f"Store unavailable during {operation}: {e}")
        raise StoreUnavailableError(
            f"Could not {operation}: data store unavailable"
        ) from e
