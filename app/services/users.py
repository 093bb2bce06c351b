"""User CRUD inside one tenant database."""

import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import EmailTakenError, UserNotFoundError
from app.db.tenants import TenantConnection
from app.models.tenant import User
from app.services.schema_builder import RecordSchema

logger = structlog.get_logger(__name__)


class TenantUserService:
    def __init__(self, connection: TenantConnection, schema: RecordSchema) -> None:
        self.connection = connection
        self.schema = schema

    async def create(self, payload: dict[str, Any]) -> User:
        shaped = self.schema.validate(payload)
        user = User(**shaped)
        async with self.connection.session() as session:
            session.add(user)
            await self._flush(session)

        logger.info(
            "tenant_user_created",
            tenant_db_name=self.connection.tenant_db_name,
            user_id=str(user.id),
        )
        return user

    async def list(self, skip: int = 0, limit: int = 100) -> list[User]:
        async with self.connection.session() as session:
            result = await session.execute(
                select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
            )
            return list(result.scalars().all())

    async def get(self, user_id: uuid.UUID) -> User:
        async with self.connection.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFoundError()
            return user

    async def update(self, user_id: uuid.UUID, payload: dict[str, Any]) -> User:
        shaped = self.schema.validate(payload, partial=True)
        async with self.connection.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFoundError()
            for key, value in shaped.items():
                if value is not None:
                    setattr(user, key, value)
            await self._flush(session)
            await session.refresh(user)
            return user

    async def delete(self, user_id: uuid.UUID) -> None:
        async with self.connection.session() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFoundError()
            await session.delete(user)

        logger.info(
            "tenant_user_deleted",
            tenant_db_name=self.connection.tenant_db_name,
            user_id=str(user_id),
        )

    @staticmethod
    async def _flush(session: AsyncSession) -> None:
        try:
            await session.flush()
        except IntegrityError as e:
            raise EmailTakenError() from e
