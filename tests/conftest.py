"""Shared pytest fixtures for the Leadbase test suite.

Provides:
  - test_settings: settings pointed at a SQLite registry file under tmp_path
  - registry_session_factory / registry_db: registry schema + async sessions
  - runtime: TenantRuntime whose tenant databases are sibling SQLite files
  - client: httpx AsyncClient over the ASGI app with the registry and
    runtime wired to the fixtures above
  - superadmin_headers / make_admin / admin_headers: auth helpers

Every backing store is a real SQLite database created in tmp_path, so the
registry and each tenant database are genuinely separate files.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import Settings, settings
from app.core.security import ROLE_SUPERADMIN, Principal, create_access_token
from app.db.registry import Base, get_async_session
from app.db.tenants import TenantConnectionManager
from app.models.admin import Admin  # noqa: F401  (registers the table on Base)
from app.services.runtime import TenantRuntime

SUPERADMIN_USER = "root"
SUPERADMIN_PASS = "root-password"
ADMIN_PASSWORD = "s3cret-pass"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Point the process settings at tmp_path for the duration of a test."""
    monkeypatch.setattr(
        settings, "database_url", f"sqlite+aiosqlite:///{tmp_path / 'superadmin_db.db'}"
    )
    monkeypatch.setattr(settings, "jwt_secret_key", "test-secret-key")
    monkeypatch.setattr(settings, "jwt_algorithm", "HS256")
    monkeypatch.setattr(settings, "jwt_expire_hours", 1)
    monkeypatch.setattr(settings, "superadmin_user", SUPERADMIN_USER)
    monkeypatch.setattr(settings, "superadmin_pass", SUPERADMIN_PASS)
    monkeypatch.setattr(settings, "schema_refresh_on_update", False)
    return settings


# ---------------------------------------------------------------------------
# Registry database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def registry_session_factory(
    test_settings: Settings,
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Registry schema on a fresh SQLite file."""
    engine = create_async_engine(test_settings.database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def registry_db(
    registry_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with registry_session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Tenant runtime
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def runtime(test_settings: Settings) -> AsyncIterator[TenantRuntime]:
    tenant_runtime = TenantRuntime(TenantConnectionManager(test_settings.database_url))
    yield tenant_runtime
    await tenant_runtime.close()


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    registry_session_factory: async_sessionmaker[AsyncSession],
    runtime: TenantRuntime,
) -> AsyncIterator[AsyncClient]:
    """AsyncClient over the app, bypassing the lifespan."""
    from app.main import app

    async def _registry_session() -> AsyncIterator[AsyncSession]:
        async with registry_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = _registry_session
    app.state.tenant_runtime = runtime

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def superadmin_headers(test_settings: Settings) -> dict[str, str]:
    token = create_access_token(Principal(role=ROLE_SUPERADMIN, username=SUPERADMIN_USER))
    return {"Authorization": f"Bearer {token}"}


MakeAdmin = Callable[..., Awaitable[dict[str, Any]]]


@pytest.fixture
def make_admin(client: AsyncClient, superadmin_headers: dict[str, str]) -> MakeAdmin:
    """Create an admin through the API and return the response body."""

    async def _make(
        username: str,
        selected_fields: list[str] | None = None,
        password: str = ADMIN_PASSWORD,
        **extra: Any,
    ) -> dict[str, Any]:
        body = {
            "username": username,
            "password": password,
            "selectedFields": selected_fields or [],
            **extra,
        }
        resp = await client.post(
            "/api/superadmin/create-admin", json=body, headers=superadmin_headers
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


AdminHeaders = Callable[..., Awaitable[dict[str, str]]]


@pytest.fixture
def admin_headers(client: AsyncClient) -> AdminHeaders:
    """Log an admin in through the API and return bearer headers."""

    async def _login(username: str, password: str = ADMIN_PASSWORD) -> dict[str, str]:
        resp = await client.post(
            "/api/admin/login", json={"username": username, "password": password}
        )
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _login
