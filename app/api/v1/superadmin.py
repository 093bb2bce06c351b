"""Superadmin endpoints — tenant registry management."""

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_registry, get_tenant_runtime, require_superadmin
from app.core.config import settings
from app.schemas.admin import AdminCreate, AdminResponse, AdminUpdate, DeleteResponse
from app.services.leads import LeadService
from app.services.registry import TenantRegistry
from app.services.runtime import TenantRuntime

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/superadmin",
    tags=["superadmin"],
    dependencies=[Depends(require_superadmin)],
)


@router.post(
    "/create-admin",
    response_model=AdminResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_admin(
    body: AdminCreate,
    registry: TenantRegistry = Depends(get_registry),
    runtime: TenantRuntime = Depends(get_tenant_runtime),
) -> AdminResponse:
    """Create a tenant admin and open its database."""
    admin = await registry.create_admin(body)
    # Allocates the tenant namespace now rather than on first admin request.
    await runtime.connections.acquire(admin.tenant_db_name)
    return AdminResponse.from_admin(admin)


@router.get("/admins", response_model=list[AdminResponse])
async def list_admins(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    registry: TenantRegistry = Depends(get_registry),
) -> list[AdminResponse]:
    """List registry entries. Password hashes are never included."""
    admins = await registry.list_admins(skip=skip, limit=limit)
    return [AdminResponse.from_admin(a) for a in admins]


@router.get("/admins/{admin_id}", response_model=AdminResponse)
async def get_admin(
    admin_id: UUID,
    registry: TenantRegistry = Depends(get_registry),
) -> AdminResponse:
    return AdminResponse.from_admin(await registry.get_admin(admin_id))


@router.get("/admins/{admin_id}/users", response_model=list[dict[str, Any]])
async def list_admin_leads(
    admin_id: UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    registry: TenantRegistry = Depends(get_registry),
    runtime: TenantRuntime = Depends(get_tenant_runtime),
) -> list[dict[str, Any]]:
    """List the Lead records of one tenant."""
    admin = await registry.get_admin(admin_id)
    models = await runtime.tenant_models(admin.tenant_db_name, admin.selected_fields)
    leads = LeadService(connection=models.connection, schema=models.lead_schema)
    return await leads.list(skip=skip, limit=limit)


@router.put("/admins/{admin_id}", response_model=AdminResponse)
async def update_admin(
    admin_id: UUID,
    body: AdminUpdate,
    registry: TenantRegistry = Depends(get_registry),
    runtime: TenantRuntime = Depends(get_tenant_runtime),
) -> AdminResponse:
    """Update an admin.

    A new field selection only reaches a tenant whose Lead schema is not yet
    materialized, unless SCHEMA_REFRESH_ON_UPDATE is enabled.
    """
    admin = await registry.update_admin(admin_id, body)
    if body.selected_fields is not None and settings.schema_refresh_on_update:
        # A rebuild must read the new selection, so commit before invalidating.
        await registry.db.commit()
        runtime.invalidate_schemas(admin.tenant_db_name)
    return AdminResponse.from_admin(admin)


@router.patch("/admins/{admin_id}/toggle-status", response_model=AdminResponse)
async def toggle_admin_status(
    admin_id: UUID,
    registry: TenantRegistry = Depends(get_registry),
) -> AdminResponse:
    """Flip isActive. Tokens already issued stay valid until they expire."""
    return AdminResponse.from_admin(await registry.toggle_active(admin_id))


@router.delete("/admins/{admin_id}", response_model=DeleteResponse)
async def delete_admin(
    admin_id: UUID,
    registry: TenantRegistry = Depends(get_registry),
    runtime: TenantRuntime = Depends(get_tenant_runtime),
) -> DeleteResponse:
    """Remove the registry entry. The tenant database is kept."""
    admin = await registry.delete_admin(admin_id)
    await runtime.evict(admin.tenant_db_name)
    return DeleteResponse()
