"""Tenant User response schema.

Request bodies for users and leads are plain JSON objects validated by the
tenant's RecordSchema, so only the fixed User response shape is modelled here.
"""

import uuid
from datetime import datetime

from app.schemas.admin import CamelModel


class UserResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
