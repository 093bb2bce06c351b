"""Lead CRUD inside one tenant database.

Every operation is bound to a TenantConnection and that connection's Lead
schema; the schema decides which keys of a client payload are kept.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select

from app.core.exceptions import LeadNotFoundError
from app.db.tenants import TenantConnection
from app.models.tenant import Lead
from app.services.schema_builder import RecordSchema

logger = structlog.get_logger(__name__)

# Schema fields stored as columns rather than inside Lead.fields.
_CAPTURE_TIME = "captureTime"
_SOURCE = "source"


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def serialize_lead(lead: Lead) -> dict[str, Any]:
    """Flat JSON shape: metadata, then the tenant's fields, then timestamps."""
    record: dict[str, Any] = {
        "id": lead.id,
        _CAPTURE_TIME: _as_utc(lead.capture_time),
        _SOURCE: lead.source,
    }
    record.update(lead.fields or {})
    record["createdAt"] = _as_utc(lead.created_at)
    record["updatedAt"] = _as_utc(lead.updated_at)
    return record


class LeadService:
    def __init__(self, connection: TenantConnection, schema: RecordSchema) -> None:
        self.connection = connection
        self.schema = schema

    async def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        shaped = self.schema.validate(payload)
        lead = Lead(
            capture_time=shaped.pop(_CAPTURE_TIME),
            source=shaped.pop(_SOURCE),
            fields=shaped,
        )
        async with self.connection.session() as session:
            session.add(lead)
            await session.flush()
            record = serialize_lead(lead)

        logger.info(
            "lead_created",
            tenant_db_name=self.connection.tenant_db_name,
            lead_id=str(lead.id),
            source=lead.source,
        )
        return record

    async def list(self, skip: int = 0, limit: int = 100) -> list[dict[str, Any]]:
        async with self.connection.session() as session:
            result = await session.execute(
                select(Lead).order_by(Lead.created_at.desc()).offset(skip).limit(limit)
            )
            return [serialize_lead(lead) for lead in result.scalars().all()]

    async def get(self, lead_id: uuid.UUID) -> dict[str, Any]:
        async with self.connection.session() as session:
            lead = await session.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFoundError()
            return serialize_lead(lead)

    async def update(self, lead_id: uuid.UUID, payload: dict[str, Any]) -> dict[str, Any]:
        shaped = self.schema.validate(payload, partial=True)
        capture_time = shaped.pop(_CAPTURE_TIME, None)
        source = shaped.pop(_SOURCE, None)

        async with self.connection.session() as session:
            lead = await session.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFoundError()
            if capture_time is not None:
                lead.capture_time = capture_time
            if source is not None:
                lead.source = source
            if shaped:
                # New dict so the JSON column is flagged dirty.
                lead.fields = {**(lead.fields or {}), **shaped}
            await session.flush()
            await session.refresh(lead)
            return serialize_lead(lead)

    async def delete(self, lead_id: uuid.UUID) -> None:
        async with self.connection.session() as session:
            lead = await session.get(Lead, lead_id)
            if lead is None:
                raise LeadNotFoundError()
            await session.delete(lead)

        logger.info(
            "lead_deleted",
            tenant_db_name=self.connection.tenant_db_name,
            lead_id=str(lead_id),
        )
