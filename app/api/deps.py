"""Shared FastAPI dependencies — auth, database sessions, service injection.

The TenantRuntime is created once during the FastAPI lifespan and stored on
app.state. All downstream code retrieves it via Depends(), never by direct
import. Tenant-scoped services are always bound to the tenant named in the
caller's token, never to a client-supplied value.
"""

import uuid

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.security import (
    ROLE_ADMIN,
    ROLE_SUPERADMIN,
    Principal,
    decode_access_token,
)
from app.db.registry import get_async_session
from app.models.admin import Admin
from app.services.leads import LeadService
from app.services.registry import TenantRegistry
from app.services.runtime import TenantModels, TenantRuntime
from app.services.users import TenantUserService

_bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

async def get_db(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncSession:
    """Yield an async registry session."""
    return session


def get_tenant_runtime(request: Request) -> TenantRuntime:
    """Return the process-wide TenantRuntime from app state."""
    return request.app.state.tenant_runtime


async def get_registry(db: AsyncSession = Depends(get_db)) -> TenantRegistry:
    return TenantRegistry(db=db)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

async def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Principal:
    """Decode the bearer token. Missing or invalid → 401."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing token")
    return decode_access_token(credentials.credentials)


def require_role(role: str):
    async def _require(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role != role:
            raise ForbiddenError()
        return principal

    return _require


require_superadmin = require_role(ROLE_SUPERADMIN)
require_admin = require_role(ROLE_ADMIN)


async def get_current_admin(
    principal: Principal = Depends(require_admin),
    registry: TenantRegistry = Depends(get_registry),
) -> Admin:
    """Registry entry of the calling admin.

    The token's tenantDbName must still match the entry; a deleted admin's
    token is rejected.
    """
    try:
        admin_id = uuid.UUID(str(principal.admin_id))
    except ValueError as e:
        raise UnauthorizedError("Invalid token") from e

    admin = await registry.db.get(Admin, admin_id)
    if admin is None or admin.tenant_db_name != principal.tenant_db_name:
        raise UnauthorizedError("Admin account no longer exists")
    return admin


# ---------------------------------------------------------------------------
# Tenant services
# ---------------------------------------------------------------------------

async def get_admin_tenant_models(
    admin: Admin = Depends(get_current_admin),
    runtime: TenantRuntime = Depends(get_tenant_runtime),
) -> TenantModels:
    """Connection and schemas for the calling admin's tenant."""
    return await runtime.tenant_models(admin.tenant_db_name, admin.selected_fields)


async def get_lead_service(
    models: TenantModels = Depends(get_admin_tenant_models),
) -> LeadService:
    return LeadService(connection=models.connection, schema=models.lead_schema)


async def get_user_service(
    principal: Principal = Depends(require_admin),
    runtime: TenantRuntime = Depends(get_tenant_runtime),
) -> TenantUserService:
    """User collection of the caller's tenant. Needs no registry lookup."""
    connection, schema = await runtime.user_collection(principal.tenant_db_name)
    return TenantUserService(connection=connection, schema=schema)
