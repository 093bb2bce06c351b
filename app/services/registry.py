"""Tenant registry — admin accounts in the shared registry database.

Usernames are case-insensitive: they are folded to lowercase at creation and
at login, and the tenant database name is derived from the folded value.
Password hashes never leave this module's ORM rows; API responses are built
from AdminResponse, which has no hash field.
"""

import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AdminNotFoundError,
    InvalidCredentialsError,
    UsernameTakenError,
)
from app.core.security import hash_password, verify_password
from app.models.admin import Admin
from app.schemas.admin import AdminCreate, AdminUpdate, CompanyProfile

logger = structlog.get_logger(__name__)

TENANT_DB_PREFIX = "tenant_"


def normalize_username(username: str) -> str:
    return username.strip().lower()


def derive_tenant_db_name(username: str) -> str:
    return f"{TENANT_DB_PREFIX}{normalize_username(username)}"


class TenantRegistry:
    """CRUD over registry entries plus admin authentication."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_admin(self, body: AdminCreate) -> Admin:
        username = normalize_username(body.username)
        tenant_db_name = derive_tenant_db_name(username)

        result = await self.db.execute(
            select(Admin.id).where(
                (Admin.username == username) | (Admin.tenant_db_name == tenant_db_name)
            )
        )
        if result.first() is not None:
            raise UsernameTakenError()

        profile = body.company_profile or CompanyProfile()
        admin = Admin(
            username=username,
            password_hash=hash_password(body.password),
            tenant_db_name=tenant_db_name,
            email=body.email,
            is_active=True,
            company_name=profile.name,
            company_logo_url=profile.logo_url,
            company_details=profile.details,
            selected_fields=list(body.selected_fields),
        )
        self.db.add(admin)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent create for the same name.
            await self.db.rollback()
            raise UsernameTakenError() from e

        logger.info(
            "admin_created",
            admin_id=str(admin.id),
            tenant_db_name=tenant_db_name,
            selected_fields=admin.selected_fields,
        )
        return admin

    async def list_admins(self, skip: int = 0, limit: int = 100) -> list[Admin]:
        result = await self.db.execute(
            select(Admin).order_by(Admin.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def get_admin(self, admin_id: uuid.UUID) -> Admin:
        admin = await self.db.get(Admin, admin_id)
        if admin is None:
            raise AdminNotFoundError()
        return admin

    async def update_admin(self, admin_id: uuid.UUID, body: AdminUpdate) -> Admin:
        admin = await self.get_admin(admin_id)
        changes = body.model_dump(exclude_unset=True)

        if "email" in changes:
            admin.email = body.email
        if body.password is not None:
            admin.password_hash = hash_password(body.password)
        if body.is_active is not None:
            admin.is_active = body.is_active
        if body.selected_fields is not None:
            admin.selected_fields = list(body.selected_fields)
        if "company_profile" in changes:
            profile = body.company_profile or CompanyProfile()
            admin.company_name = profile.name
            admin.company_logo_url = profile.logo_url
            admin.company_details = profile.details

        await self.db.flush()
        await self.db.refresh(admin)
        logger.info(
            "admin_updated",
            admin_id=str(admin.id),
            fields=sorted(k for k in changes if k != "password"),
        )
        return admin

    async def toggle_active(self, admin_id: uuid.UUID) -> Admin:
        admin = await self.get_admin(admin_id)
        admin.is_active = not admin.is_active
        await self.db.flush()
        await self.db.refresh(admin)
        logger.info("admin_toggled", admin_id=str(admin.id), is_active=admin.is_active)
        return admin

    async def delete_admin(self, admin_id: uuid.UUID) -> Admin:
        """Remove the registry entry. The tenant database is left untouched."""
        admin = await self.get_admin(admin_id)
        await self.db.delete(admin)
        await self.db.flush()
        logger.info(
            "admin_deleted",
            admin_id=str(admin_id),
            tenant_db_name=admin.tenant_db_name,
        )
        return admin

    async def authenticate(self, username: str, password: str) -> Admin:
        """Verify credentials of an active admin. Raises InvalidCredentialsError."""
        result = await self.db.execute(
            select(Admin).where(
                Admin.username == normalize_username(username),
                Admin.is_active.is_(True),
            )
        )
        admin = result.scalar_one_or_none()
        if admin is None or not verify_password(password, admin.password_hash):
            logger.info("admin_login_failed", username=normalize_username(username))
            raise InvalidCredentialsError()
        return admin
