"""Async SQLAlchemy engine and session factory for the registry database.

The registry ("master") database holds one row per tenant admin. The engine
is created lazily on first use so a missing DATABASE_URL surfaces as a
ConfigurationError on the request that needs it rather than at import time.
Connection errors are caught and re-raised as DatabaseConnectionError
so the API layer receives a typed, structured error.
"""

from collections.abc import AsyncGenerator

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings
from app.core.exceptions import ConfigurationError, DatabaseConnectionError

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for registry ORM models."""
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Return the registry engine, creating it on first call."""
    global _engine
    if _engine is None:
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is not configured")
        _engine = create_async_engine(
            settings.database_url,
            echo=False,
            pool_pre_ping=True,
        )
        logger.info("registry_engine_created")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a registry session.

    Commits on success, rolls back on exception, always closes.
    SQLAlchemy driver errors are caught and re-raised as DatabaseConnectionError.
    """
    factory = get_session_factory()
    try:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("registry_session_error", error=str(e))
                raise DatabaseConnectionError(f"Database operation failed: {e}") from e
            except Exception:
                await session.rollback()
                raise
    except DatabaseConnectionError:
        raise
    except SQLAlchemyError as e:
        logger.error("registry_connection_error", error=str(e))
        raise DatabaseConnectionError(f"Database connection failed: {e}") from e


async def close_registry() -> None:
    """Gracefully dispose of the registry connection pool."""
    global _engine, _session_factory
    if _engine is None:
        return
    logger.info("registry_shutdown")
    await _engine.dispose()
    _engine = None
    _session_factory = None
