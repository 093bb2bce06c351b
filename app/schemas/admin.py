"""Tenant registry request/response schemas."""

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.admin import Admin
from app.services.schema_builder import KNOWN_FIELD_IDS

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,64}$")
MIN_PASSWORD_LENGTH = 8


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CompanyProfile(CamelModel):
    name: str | None = None
    logo_url: str | None = None
    details: str | None = None


def _check_selected_fields(value: list[str] | None) -> list[str] | None:
    if value is None:
        return value
    unknown = [f for f in value if f not in KNOWN_FIELD_IDS]
    if unknown:
        raise ValueError(f"unknown field identifiers: {', '.join(unknown)}")
    return list(dict.fromkeys(value))


class AdminCreate(CamelModel):
    """POST /api/superadmin/create-admin request body."""

    username: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    email: str | None = None
    company_profile: CompanyProfile | None = None
    selected_fields: list[str] = Field(default_factory=list)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        if not USERNAME_PATTERN.match(v):
            raise ValueError(
                "username must be 3-64 characters of letters, digits or underscore"
            )
        return v

    @field_validator("selected_fields")
    @classmethod
    def check_selected_fields(cls, v: list[str]) -> list[str]:
        return _check_selected_fields(v)


class AdminUpdate(CamelModel):
    """PUT /api/superadmin/admins/{id} request body. username and tenantDbName are immutable."""

    model_config = ConfigDict(extra="forbid")

    email: str | None = None
    password: str | None = Field(default=None, min_length=MIN_PASSWORD_LENGTH)
    company_profile: CompanyProfile | None = None
    selected_fields: list[str] | None = None
    is_active: bool | None = None

    @field_validator("selected_fields")
    @classmethod
    def check_selected_fields(cls, v: list[str] | None) -> list[str] | None:
        return _check_selected_fields(v)


class AdminResponse(CamelModel):
    id: uuid.UUID
    username: str
    tenant_db_name: str
    email: str | None = None
    is_active: bool
    company_profile: CompanyProfile
    selected_fields: list[str]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_admin(cls, admin: Admin) -> "AdminResponse":
        return cls(
            id=admin.id,
            username=admin.username,
            tenant_db_name=admin.tenant_db_name,
            email=admin.email,
            is_active=admin.is_active,
            company_profile=CompanyProfile(
                name=admin.company_name,
                logo_url=admin.company_logo_url,
                details=admin.company_details,
            ),
            selected_fields=list(admin.selected_fields or []),
            created_at=admin.created_at,
            updated_at=admin.updated_at,
        )


class DeleteResponse(CamelModel):
    success: bool = True
