"""Unit tests for TenantConnectionManager.

Tests:
  - sequential acquires return the same handle and open one engine
  - concurrent first-time acquires for one tenant open exactly one engine
  - a slow tenant does not block acquisition of another tenant
  - closed handles are replaced on the next acquire; evict forgets a tenant
  - evict during an in-flight first open closes that handle; locks are not retained
  - missing DATABASE_URL → ConfigurationError, unreachable store → DatabaseConnectionError
  - tenant URLs are siblings of the registry URL
"""

from __future__ import annotations

import asyncio
import gc
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from app.core.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    InvalidInputError,
)
from app.db.tenants import TenantConnectionManager, tenant_database_url

pytestmark = pytest.mark.unit


class CountingEngineFactory:
    """Wraps create_async_engine and records every URL it is asked to open."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def __call__(self, url: Any, **kwargs: Any) -> AsyncEngine:
        self.calls.append(str(url))
        return create_async_engine(url, **kwargs)

    def count_for(self, tenant_db_name: str) -> int:
        return sum(1 for c in self.calls if c.endswith(f"/{tenant_db_name}.db"))


def _base_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'superadmin_db.db'}"


class TestTenantDatabaseUrl:
    """Tests for tenant_database_url()."""

    def test_sqlite_sibling_file(self, tmp_path: Path) -> None:
        url = tenant_database_url(_base_url(tmp_path), "tenant_alice")
        assert url.database == str(tmp_path / "tenant_alice.db")
        assert url.drivername == "sqlite+aiosqlite"

    def test_postgres_sibling_database(self) -> None:
        url = tenant_database_url(
            "postgresql+asyncpg://u:p@db.example:5432/superadmin_db", "tenant_bob"
        )
        assert url.database == "tenant_bob"
        assert url.host == "db.example"
        assert url.port == 5432
        assert url.username == "u"

    def test_empty_url_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            tenant_database_url("", "tenant_alice")

    def test_in_memory_sqlite_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            tenant_database_url("sqlite+aiosqlite:///:memory:", "tenant_alice")


class TestAcquire:
    """Tests for TenantConnectionManager.acquire()."""

    @pytest.mark.asyncio
    async def test_sequential_acquires_reuse_handle(self, tmp_path: Path) -> None:
        factory = CountingEngineFactory()
        manager = TenantConnectionManager(_base_url(tmp_path), engine_factory=factory)
        try:
            handles = [await manager.acquire("tenant_alice") for _ in range(5)]
            assert all(h is handles[0] for h in handles)
            assert factory.count_for("tenant_alice") == 1
            assert manager.cached_names() == ["tenant_alice"]
        finally:
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_acquire_allocates_namespace(self, tmp_path: Path) -> None:
        manager = TenantConnectionManager(_base_url(tmp_path))
        try:
            assert not (tmp_path / "tenant_new.db").exists()
            await manager.acquire("tenant_new")
            assert (tmp_path / "tenant_new.db").exists()
        finally:
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_data_survives_repeated_acquire(self, tmp_path: Path) -> None:
        """The store is not reinitialised by later acquires."""
        manager = TenantConnectionManager(_base_url(tmp_path))
        try:
            first = await manager.acquire("tenant_alice")
            async with first.engine.begin() as conn:
                await conn.execute(text("CREATE TABLE marker (v INTEGER)"))
                await conn.execute(text("INSERT INTO marker VALUES (42)"))

            again = await manager.acquire("tenant_alice")
            async with again.engine.connect() as conn:
                value = await conn.scalar(text("SELECT v FROM marker"))
            assert value == 42
        finally:
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_concurrent_first_acquires_coalesce(self, tmp_path: Path) -> None:
        factory = CountingEngineFactory()
        manager = TenantConnectionManager(_base_url(tmp_path), engine_factory=factory)
        try:
            handles = await asyncio.gather(
                *(manager.acquire("tenant_alice") for _ in range(20))
            )
            assert len({id(h) for h in handles}) == 1
            assert factory.count_for("tenant_alice") == 1
        finally:
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_tenants_do_not_block_each_other(self, tmp_path: Path) -> None:
        """While tenant_slow is still opening, tenant_fast completes."""
        release = asyncio.Event()
        entered = asyncio.Event()
        manager = TenantConnectionManager(_base_url(tmp_path))
        original_open = manager._open

        async def gated_open(name: str) -> Any:
            if name == "tenant_slow":
                entered.set()
                await release.wait()
            return await original_open(name)

        manager._open = gated_open  # type: ignore[method-assign]
        try:
            slow = asyncio.create_task(manager.acquire("tenant_slow"))
            await entered.wait()

            fast = await asyncio.wait_for(manager.acquire("tenant_fast"), timeout=5)
            assert fast.tenant_db_name == "tenant_fast"
            assert not slow.done()

            release.set()
            assert (await slow).tenant_db_name == "tenant_slow"
        finally:
            release.set()
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_distinct_tenants_get_distinct_handles(self, tmp_path: Path) -> None:
        factory = CountingEngineFactory()
        manager = TenantConnectionManager(_base_url(tmp_path), engine_factory=factory)
        try:
            alice = await manager.acquire("tenant_alice")
            bob = await manager.acquire("tenant_bob")
            assert alice is not bob
            assert alice.engine is not bob.engine
            assert manager.cached_names() == ["tenant_alice", "tenant_bob"]
        finally:
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_closed_handle_is_replaced(self, tmp_path: Path) -> None:
        factory = CountingEngineFactory()
        manager = TenantConnectionManager(_base_url(tmp_path), engine_factory=factory)
        try:
            first = await manager.acquire("tenant_alice")
            await first.close()
            assert not first.is_healthy

            second = await manager.acquire("tenant_alice")
            assert second is not first
            assert second.is_healthy
            assert factory.count_for("tenant_alice") == 2
        finally:
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_evict(self, tmp_path: Path) -> None:
        manager = TenantConnectionManager(_base_url(tmp_path))
        try:
            handle = await manager.acquire("tenant_alice")
            assert await manager.evict("tenant_alice") is True
            assert not handle.is_healthy
            assert manager.cached_names() == []
            assert await manager.evict("tenant_alice") is False
        finally:
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_evict_waits_for_inflight_open(self, tmp_path: Path) -> None:
        """An evict issued while the first open is running removes that handle."""
        release = asyncio.Event()
        entered = asyncio.Event()
        manager = TenantConnectionManager(_base_url(tmp_path))
        original_open = manager._open

        async def gated_open(name: str) -> Any:
            entered.set()
            await release.wait()
            return await original_open(name)

        manager._open = gated_open  # type: ignore[method-assign]
        try:
            acquiring = asyncio.create_task(manager.acquire("tenant_alice"))
            await entered.wait()
            evicting = asyncio.create_task(manager.evict("tenant_alice"))
            await asyncio.sleep(0)
            assert not evicting.done()

            release.set()
            handle = await acquiring
            assert await evicting is True
            assert not handle.is_healthy
            assert manager.cached_names() == []
        finally:
            release.set()
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_locks_do_not_accumulate(self, tmp_path: Path) -> None:
        manager = TenantConnectionManager(_base_url(tmp_path))
        try:
            for i in range(5):
                await manager.acquire(f"tenant_{i}")
                await manager.evict(f"tenant_{i}")
            gc.collect()
            assert len(manager._locks) == 0
        finally:
            await manager.close_all()

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, tmp_path: Path) -> None:
        manager = TenantConnectionManager(_base_url(tmp_path))
        with pytest.raises(InvalidInputError):
            await manager.acquire("")


class TestAcquireFailures:
    """Failures propagate to the caller and are not cached."""

    @pytest.mark.asyncio
    async def test_missing_configuration(self) -> None:
        manager = TenantConnectionManager("")
        with pytest.raises(ConfigurationError):
            await manager.acquire("tenant_alice")

    @pytest.mark.asyncio
    async def test_unreachable_store(self, tmp_path: Path) -> None:
        missing_dir = tmp_path / "does-not-exist"
        manager = TenantConnectionManager(
            f"sqlite+aiosqlite:///{missing_dir / 'superadmin_db.db'}"
        )
        with pytest.raises(DatabaseConnectionError):
            await manager.acquire("tenant_alice")
        assert manager.cached_names() == []

    @pytest.mark.asyncio
    async def test_failed_acquire_is_not_retried(self, tmp_path: Path) -> None:
        """One failing acquire opens one engine; the next caller tries afresh."""
        missing_dir = tmp_path / "does-not-exist"
        factory = CountingEngineFactory()
        manager = TenantConnectionManager(
            f"sqlite+aiosqlite:///{missing_dir / 'superadmin_db.db'}",
            engine_factory=factory,
        )
        with pytest.raises(DatabaseConnectionError):
            await manager.acquire("tenant_alice")
        assert len(factory.calls) == 1

        missing_dir.mkdir()
        handle = await manager.acquire("tenant_alice")
        try:
            assert handle.is_healthy
            assert len(factory.calls) == 2
        finally:
            await manager.close_all()
