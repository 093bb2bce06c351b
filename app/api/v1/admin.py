"""Tenant admin endpoints — Users and Leads in the caller's own database."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from app.api.deps import (
    get_current_admin,
    get_lead_service,
    get_user_service,
    require_admin,
)
from app.models.admin import Admin
from app.schemas.admin import AdminResponse, DeleteResponse
from app.schemas.user import UserResponse
from app.services.leads import LeadService
from app.services.users import TenantUserService

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("/profile", response_model=AdminResponse)
async def get_profile(admin: Admin = Depends(get_current_admin)) -> AdminResponse:
    """The caller's own registry entry."""
    return AdminResponse.from_admin(admin)


# -- Users --------------------------------------------------------------------

@router.get("/users", response_model=list[UserResponse])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    users: TenantUserService = Depends(get_user_service),
) -> list[UserResponse]:
    return [UserResponse.model_validate(u) for u in await users.list(skip, limit)]


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: dict[str, Any] = Body(...),
    users: TenantUserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(await users.create(payload))


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    users: TenantUserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(await users.get(user_id))


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    payload: dict[str, Any] = Body(...),
    users: TenantUserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(await users.update(user_id, payload))


@router.delete("/users/{user_id}", response_model=DeleteResponse)
async def delete_user(
    user_id: UUID,
    users: TenantUserService = Depends(get_user_service),
) -> DeleteResponse:
    await users.delete(user_id)
    return DeleteResponse()


# -- Leads --------------------------------------------------------------------

@router.get("/leads", response_model=list[dict[str, Any]])
async def list_leads(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    leads: LeadService = Depends(get_lead_service),
) -> list[dict[str, Any]]:
    """Newest first."""
    return await leads.list(skip, limit)


@router.post("/leads", response_model=dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_lead(
    payload: dict[str, Any] = Body(...),
    leads: LeadService = Depends(get_lead_service),
) -> dict[str, Any]:
    """Create a Lead shaped by the tenant's selected fields. Unknown keys are dropped."""
    return await leads.create(payload)


@router.get("/leads/{lead_id}", response_model=dict[str, Any])
async def get_lead(
    lead_id: UUID,
    leads: LeadService = Depends(get_lead_service),
) -> dict[str, Any]:
    return await leads.get(lead_id)


@router.put("/leads/{lead_id}", response_model=dict[str, Any])
async def update_lead(
    lead_id: UUID,
    payload: dict[str, Any] = Body(...),
    leads: LeadService = Depends(get_lead_service),
) -> dict[str, Any]:
    return await leads.update(lead_id, payload)


@router.delete("/leads/{lead_id}", response_model=DeleteResponse)
async def delete_lead(
    lead_id: UUID,
    leads: LeadService = Depends(get_lead_service),
) -> DeleteResponse:
    await leads.delete(lead_id)
    return DeleteResponse()
