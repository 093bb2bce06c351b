"""Process-wide tenant runtime.

Created once during the FastAPI lifespan and stored on app.state. Owns the
tenant connection cache and, through each connection, the schemas
materialized for it. Handlers get it via Depends(get_tenant_runtime).
"""

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from app.db.tenants import TenantConnection, TenantConnectionManager
from app.services.schema_builder import (
    RecordSchema,
    invalidate_schemas,
    lead_schema_for,
    user_schema_for,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TenantModels:
    connection: TenantConnection
    user_schema: RecordSchema
    lead_schema: RecordSchema


class TenantRuntime:
    def __init__(self, connections: TenantConnectionManager) -> None:
        self.connections = connections

    async def tenant_models(
        self,
        tenant_db_name: str,
        selected_fields: Iterable[str] = (),
    ) -> TenantModels:
        """Resolve the tenant connection and both of its record schemas."""
        connection = await self.connections.acquire(tenant_db_name)
        user_schema = await user_schema_for(connection)
        lead_schema = await lead_schema_for(connection, selected_fields)
        return TenantModels(
            connection=connection,
            user_schema=user_schema,
            lead_schema=lead_schema,
        )

    async def user_collection(
        self, tenant_db_name: str
    ) -> tuple[TenantConnection, RecordSchema]:
        """Connection and User schema only; leaves the Lead schema unmaterialized."""
        connection = await self.connections.acquire(tenant_db_name)
        return connection, await user_schema_for(connection)

    def invalidate_schemas(self, tenant_db_name: str) -> bool:
        """Drop materialized schemas so the next request rebuilds them."""
        connection = self.connections.get_cached(tenant_db_name)
        if connection is None:
            return False
        invalidate_schemas(connection)
        return True

    async def evict(self, tenant_db_name: str) -> bool:
        return await self.connections.evict(tenant_db_name)

    async def close(self) -> None:
        logger.info("tenant_runtime_shutdown")
        await self.connections.close_all()
