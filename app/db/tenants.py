"""Per-tenant database connections.

Each tenant owns one logical database on the shared backing store, named by
its ``tenant_db_name`` and addressed as a sibling of the registry database:

    postgresql+asyncpg://u:p@host/superadmin_db  →  .../tenant_alice
    sqlite+aiosqlite:///./data/superadmin_db.db  →  ./data/tenant_alice.db

TenantConnectionManager keeps one TenantConnection per tenant for the life of
the process. Creation is serialized per key: concurrent first-time acquires
for the same tenant share one engine, while different tenants never wait on
each other. Failures propagate to the caller as ConfigurationError or
DatabaseConnectionError; nothing is retried.
"""

import asyncio
import weakref
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.core.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    InvalidInputError,
)
from app.models.tenant import TenantBase

logger = structlog.get_logger(__name__)

EngineFactory = Callable[..., AsyncEngine]

# Database used for CREATE DATABASE on PostgreSQL.
_PG_MAINTENANCE_DB = "postgres"


def tenant_database_url(base_url: str, tenant_db_name: str) -> URL:
    """Address ``tenant_db_name`` as a sibling database of ``base_url``."""
    if not base_url:
        raise ConfigurationError("DATABASE_URL is not configured")
    try:
        url = make_url(base_url)
    except ArgumentError as e:
        raise ConfigurationError(f"DATABASE_URL is not a valid database URL: {e}") from e

    if url.get_backend_name() == "sqlite":
        if not url.database or url.database == ":memory:":
            raise ConfigurationError(
                "SQLite tenant stores require a file-backed DATABASE_URL"
            )
        sibling = Path(url.database).with_name(f"{tenant_db_name}.db")
        return url.set(database=str(sibling))
    return url.set(database=tenant_db_name)


class TenantConnection:
    """Live handle to one tenant database.

    Also carries the record schemas materialized for this connection
    (see app/services/schema_builder.py). Schemas are registered under fixed
    names ("User", "Lead"); the connection itself is the tenant boundary.
    """

    def __init__(self, tenant_db_name: str, engine: AsyncEngine) -> None:
        self.tenant_db_name = tenant_db_name
        self.engine = engine
        self.schemas: dict[str, Any] = {}
        self.schema_lock = asyncio.Lock()
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._storage_ready = False
        self._closed = False

    @property
    def is_healthy(self) -> bool:
        return not self._closed

    @property
    def storage_ready(self) -> bool:
        return self._storage_ready

    async def ensure_storage(self) -> None:
        """Create the tenant tables once per connection. Call under schema_lock."""
        if self._storage_ready:
            return
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(TenantBase.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error(
                "tenant_storage_init_failed",
                tenant_db_name=self.tenant_db_name,
                error=str(e),
            )
            raise DatabaseConnectionError(
                f"Could not initialise tenant store '{self.tenant_db_name}': {e}"
            ) from e
        self._storage_ready = True
        logger.info("tenant_storage_ready", tenant_db_name=self.tenant_db_name)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session bound to this tenant database.

        Commits on success, rolls back on exception. Driver errors other
        than those the caller already translated become DatabaseConnectionError.
        """
        try:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.error(
                        "tenant_session_error",
                        tenant_db_name=self.tenant_db_name,
                        error=str(e),
                    )
                    raise DatabaseConnectionError(
                        f"Tenant database operation failed: {e}"
                    ) from e
                except Exception:
                    await session.rollback()
                    raise
        except DatabaseConnectionError:
            raise
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(
                f"Tenant database connection failed: {e}"
            ) from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.schemas.clear()
        await self.engine.dispose()
        logger.info("tenant_connection_closed", tenant_db_name=self.tenant_db_name)


class TenantConnectionManager:
    """Process-wide cache of tenant connections, keyed by tenant_db_name."""

    def __init__(
        self,
        base_url: str,
        engine_factory: EngineFactory = create_async_engine,
    ) -> None:
        self._base_url = base_url
        self._engine_factory = engine_factory
        self._connections: dict[str, TenantConnection] = {}
        # An entry lives only while an acquire or evict holds its lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def cached_names(self) -> list[str]:
        return sorted(self._connections)

    def get_cached(self, tenant_db_name: str) -> TenantConnection | None:
        connection = self._connections.get(tenant_db_name)
        if connection is not None and connection.is_healthy:
            return connection
        return None

    async def acquire(self, tenant_db_name: str) -> TenantConnection:
        """Return the live connection for a tenant, opening it on first use."""
        if not tenant_db_name:
            raise InvalidInputError("Tenant database name is required")

        cached = self._connections.get(tenant_db_name)
        if cached is not None and cached.is_healthy:
            return cached

        async with self._lock_for(tenant_db_name):
            # Another task may have opened it while we waited.
            cached = self._connections.get(tenant_db_name)
            if cached is not None and cached.is_healthy:
                return cached

            connection = await self._open(tenant_db_name)
            self._connections[tenant_db_name] = connection
            return connection

    async def evict(self, tenant_db_name: str) -> bool:
        """Close and forget a tenant's connection. Returns False if none was cached."""
        # Waits out an in-flight open so its handle cannot outlive the eviction.
        async with self._lock_for(tenant_db_name):
            connection = self._connections.pop(tenant_db_name, None)
            if connection is None:
                return False
            await connection.close()
        logger.info("tenant_connection_evicted", tenant_db_name=tenant_db_name)
        return True

    async def close_all(self) -> None:
        names = list(self._connections)
        for name in names:
            await self.evict(name)

    def _lock_for(self, tenant_db_name: str) -> asyncio.Lock:
        return self._locks.setdefault(tenant_db_name, asyncio.Lock())

    async def _open(self, tenant_db_name: str) -> TenantConnection:
        url = tenant_database_url(self._base_url, tenant_db_name)
        await self._create_database_if_missing(url)

        engine = self._engine_factory(url, echo=False, pool_pre_ping=True)
        try:
            # First touch; SQLite allocates the file here.
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            logger.error(
                "tenant_connection_failed",
                tenant_db_name=tenant_db_name,
                error=str(e),
            )
            raise DatabaseConnectionError(
                f"Could not connect to tenant database '{tenant_db_name}': {e}"
            ) from e

        logger.info("tenant_connection_opened", tenant_db_name=tenant_db_name)
        return TenantConnection(tenant_db_name, engine)

    async def _create_database_if_missing(self, url: URL) -> None:
        """Allocate the tenant database on servers that need an explicit CREATE."""
        if url.get_backend_name() != "postgresql":
            return

        maintenance = self._engine_factory(
            url.set(database=_PG_MAINTENANCE_DB),
            isolation_level="AUTOCOMMIT",
            poolclass=NullPool,
        )
        try:
            async with maintenance.connect() as conn:
                exists = await conn.scalar(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"),
                    {"name": url.database},
                )
                if not exists:
                    quoted = conn.dialect.identifier_preparer.quote(url.database)
                    await conn.execute(text(f"CREATE DATABASE {quoted}"))
                    logger.info("tenant_database_created", tenant_db_name=url.database)
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                "tenant_database_create_failed",
                tenant_db_name=url.database,
                error=str(e),
            )
            raise DatabaseConnectionError(
                f"Could not allocate tenant database '{url.database}': {e}"
            ) from e
        finally:
            await maintenance.dispose()
