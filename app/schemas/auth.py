"""Login request/response schemas."""

import uuid

from pydantic import Field

from app.schemas.admin import CamelModel, CompanyProfile


class LoginRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SuperadminLoginResponse(CamelModel):
    """POST /api/superadmin/login response body."""

    token: str
    role: str = "superadmin"


class AdminLoginResponse(CamelModel):
    """POST /api/admin/login response body."""

    token: str
    role: str = "admin"
    admin_id: uuid.UUID
    tenant_db_name: str
    selected_fields: list[str]
    company_profile: CompanyProfile


class LoginResponse(CamelModel):
    """POST /api/auth/login response body. Tenant fields only for role=admin."""

    token: str
    role: str
    admin_id: uuid.UUID | None = None
    tenant_db_name: str | None = None
    selected_fields: list[str] | None = None
    company_profile: CompanyProfile | None = None
