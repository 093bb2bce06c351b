"""Login endpoints.

/auth/login decides the role server-side: the bootstrap superadmin
credentials are checked first, then the tenant registry. The role-specific
routes are kept for clients that already know which account they hold.
"""

import structlog
from fastapi import APIRouter, Depends

from app.api.deps import get_registry
from app.core.exceptions import InvalidCredentialsError
from app.core.security import (
    ROLE_ADMIN,
    ROLE_SUPERADMIN,
    Principal,
    check_superadmin_credentials,
    create_access_token,
    superadmin_configured,
)
from app.models.admin import Admin
from app.schemas.admin import AdminResponse
from app.schemas.auth import (
    AdminLoginResponse,
    LoginRequest,
    LoginResponse,
    SuperadminLoginResponse,
)
from app.services.registry import TenantRegistry

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["auth"])


def _superadmin_token(username: str) -> str:
    return create_access_token(Principal(role=ROLE_SUPERADMIN, username=username))


def _admin_login_response(admin: Admin) -> AdminLoginResponse:
    token = create_access_token(
        Principal(
            role=ROLE_ADMIN,
            username=admin.username,
            tenant_db_name=admin.tenant_db_name,
            admin_id=str(admin.id),
        )
    )
    profile = AdminResponse.from_admin(admin)
    return AdminLoginResponse(
        token=token,
        admin_id=admin.id,
        tenant_db_name=admin.tenant_db_name,
        selected_fields=profile.selected_fields,
        company_profile=profile.company_profile,
    )


@router.post("/superadmin/login", response_model=SuperadminLoginResponse)
async def superadmin_login(body: LoginRequest) -> SuperadminLoginResponse:
    """Log in with the bootstrap superadmin credentials."""
    if not check_superadmin_credentials(body.username, body.password):
        logger.info("superadmin_login_failed")
        raise InvalidCredentialsError()
    logger.info("superadmin_login")
    return SuperadminLoginResponse(token=_superadmin_token(body.username))


@router.post("/admin/login", response_model=AdminLoginResponse)
async def admin_login(
    body: LoginRequest,
    registry: TenantRegistry = Depends(get_registry),
) -> AdminLoginResponse:
    """Log in as a tenant admin. Inactive admins are refused."""
    admin = await registry.authenticate(body.username, body.password)
    logger.info("admin_login", admin_id=str(admin.id))
    return _admin_login_response(admin)


@router.post("/auth/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    registry: TenantRegistry = Depends(get_registry),
) -> LoginResponse:
    """Single login for both roles."""
    if superadmin_configured() and check_superadmin_credentials(
        body.username, body.password
    ):
        logger.info("superadmin_login")
        return LoginResponse(
            token=_superadmin_token(body.username), role=ROLE_SUPERADMIN
        )

    admin = await registry.authenticate(body.username, body.password)
    logger.info("admin_login", admin_id=str(admin.id))
    return LoginResponse(**_admin_login_response(admin).model_dump())
