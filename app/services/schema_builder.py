"""Record schemas for tenant collections.

A schema is plain data: an ordered tuple of FieldSpec. The User schema is
fixed. The Lead schema starts with two metadata fields (captureTime, source)
and appends one field per selected FieldId, translated through FIELD_TABLE.

Schemas are materialized at most once per TenantConnection and registered on
it under a fixed name. The first caller wins: later calls on the same
connection get the registered schema back and their ``selected_fields``
argument is ignored, so editing an admin's field selection has no effect on a
live connection until it is evicted or its schemas are invalidated.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog

from app.core.exceptions import InvalidInputError
from app.db.tenants import TenantConnection

logger = structlog.get_logger(__name__)

USER_SCHEMA_NAME = "User"
LEAD_SCHEMA_NAME = "Lead"


class FieldType(str, Enum):
    STRING = "string"
    DATETIME = "datetime"


class FieldId(str, Enum):
    """Lead-capture fields an admin can select."""

    NAME = "name"
    ORGANISATION = "organisation"
    EMAIL = "email"
    INQUIRY_TYPE = "inquiryType"
    DESIGNATION = "designation"
    MOBILE_NUMBER = "mobileNumber"
    COMMENTS = "comments"
    ADDRESS = "address"
    PINCODE = "pincode"
    PURPOSE = "purpose"
    TYPE = "type"


class LeadSource(str, Enum):
    WEBSITE = "website"
    MANUAL = "manual"


class UserRole(str, Enum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: FieldType = FieldType.STRING
    required: bool = False
    default: Any = None
    choices: tuple[str, ...] | None = None

    def default_value(self) -> Any:
        return self.default() if callable(self.default) else self.default


# FieldId → output field. Keys double as the whitelist of known identifiers.
FIELD_TABLE: dict[FieldId, FieldSpec] = {
    FieldId.NAME: FieldSpec("name"),
    FieldId.ORGANISATION: FieldSpec("organization"),
    FieldId.EMAIL: FieldSpec("email"),
    FieldId.INQUIRY_TYPE: FieldSpec("inquiryType"),
    FieldId.DESIGNATION: FieldSpec("designation"),
    FieldId.MOBILE_NUMBER: FieldSpec("phone"),
    FieldId.COMMENTS: FieldSpec("comments"),
    FieldId.ADDRESS: FieldSpec("address"),
    FieldId.PINCODE: FieldSpec("pincode"),
    FieldId.PURPOSE: FieldSpec("purpose"),
    FieldId.TYPE: FieldSpec("type"),
}

KNOWN_FIELD_IDS = frozenset(f.value for f in FieldId)


def _now() -> datetime:
    return datetime.now(timezone.utc)


CAPTURE_TIME_FIELD = FieldSpec("captureTime", FieldType.DATETIME, default=_now)
SOURCE_FIELD = FieldSpec(
    "source",
    default=LeadSource.MANUAL.value,
    choices=tuple(s.value for s in LeadSource),
)
LEAD_METADATA_FIELDS: tuple[FieldSpec, ...] = (CAPTURE_TIME_FIELD, SOURCE_FIELD)


@dataclass(frozen=True)
class RecordSchema:
    """Ordered field list for one tenant collection."""

    name: str
    fields: tuple[FieldSpec, ...]
    _by_name: dict[str, FieldSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_name", {f.name: f for f in self.fields})

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get(self, name: str) -> FieldSpec | None:
        return self._by_name.get(name)

    def validate(self, payload: Mapping[str, Any], partial: bool = False) -> dict[str, Any]:
        """Shape a client payload to this schema.

        Unknown keys are dropped. With ``partial=False`` required fields must
        be present and defaults are filled; with ``partial=True`` only the
        supplied known keys are validated and returned.
        """
        if not isinstance(payload, Mapping):
            raise InvalidInputError("Request body must be a JSON object")

        errors: list[dict[str, Any]] = []
        shaped: dict[str, Any] = {}
        for spec in self.fields:
            if payload.get(spec.name) is None:
                if spec.required and (not partial or spec.name in payload):
                    errors.append({"field": spec.name, "message": "is required"})
                elif partial:
                    if spec.name in payload:
                        shaped[spec.name] = None
                else:
                    default = spec.default_value()
                    if default is not None:
                        shaped[spec.name] = default
                continue

            try:
                shaped[spec.name] = _coerce(spec, payload[spec.name])
            except ValueError as e:
                errors.append({"field": spec.name, "message": str(e)})

        if errors:
            raise InvalidInputError(f"Invalid {self.name} payload", details=errors)
        return shaped


def _coerce(spec: FieldSpec, value: Any) -> Any:
    if spec.type is FieldType.DATETIME:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                raise ValueError("must be an ISO-8601 datetime") from None
        else:
            raise ValueError("must be an ISO-8601 datetime")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        # Stored in UTC; SQLite DateTime columns drop the offset.
        return parsed.astimezone(timezone.utc)

    # Numbers are cast the way a document store would cast them.
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError("must be a string")
    text_value = str(value)
    if spec.required and not text_value.strip():
        raise ValueError("may not be empty")
    if spec.choices is not None and text_value not in spec.choices:
        raise ValueError(f"must be one of: {', '.join(spec.choices)}")
    return text_value


def build_lead_schema(selected_fields: Iterable[str]) -> RecordSchema:
    """Build a Lead schema from an admin's selected field identifiers.

    Identifiers missing from FIELD_TABLE are dropped. Duplicates keep their
    first position.
    """
    fields: list[FieldSpec] = list(LEAD_METADATA_FIELDS)
    seen: set[str] = set()
    for raw in selected_fields:
        if raw not in KNOWN_FIELD_IDS:
            logger.debug("lead_field_ignored", field_id=raw)
            continue
        spec = FIELD_TABLE[FieldId(raw)]
        if spec.name in seen:
            continue
        seen.add(spec.name)
        fields.append(spec)
    return RecordSchema(name=LEAD_SCHEMA_NAME, fields=tuple(fields))


def build_user_schema() -> RecordSchema:
    return RecordSchema(
        name=USER_SCHEMA_NAME,
        fields=(
            FieldSpec("name", required=True),
            FieldSpec("email", required=True),
            FieldSpec(
                "role",
                default=UserRole.USER.value,
                choices=tuple(r.value for r in UserRole),
            ),
        ),
    )


async def _materialize(
    connection: TenantConnection,
    name: str,
    factory: Callable[[], RecordSchema],
) -> RecordSchema:
    existing = connection.schemas.get(name)
    if existing is not None:
        return existing

    async with connection.schema_lock:
        existing = connection.schemas.get(name)
        if existing is not None:
            return existing
        await connection.ensure_storage()
        schema = factory()
        connection.schemas[name] = schema
        logger.info(
            "schema_materialized",
            tenant_db_name=connection.tenant_db_name,
            schema=name,
            fields=schema.field_names,
        )
        return schema


async def lead_schema_for(
    connection: TenantConnection,
    selected_fields: Iterable[str],
) -> RecordSchema:
    """Return the connection's Lead schema, building it on first call.

    ``selected_fields`` is only consulted when no Lead schema is registered yet.
    """
    fields = list(selected_fields)
    return await _materialize(
        connection, LEAD_SCHEMA_NAME, lambda: build_lead_schema(fields)
    )


async def user_schema_for(connection: TenantConnection) -> RecordSchema:
    return await _materialize(connection, USER_SCHEMA_NAME, build_user_schema)


def invalidate_schemas(connection: TenantConnection) -> None:
    """Forget every schema registered on a connection."""
    connection.schemas.clear()
    logger.info("schemas_invalidated", tenant_db_name=connection.tenant_db_name)
