"""SQLAlchemy ORM models.

Individual models should be imported explicitly:
    from app.models.admin import Admin

Registry models are imported here so Alembic can detect them during migration
autogenerate. Tenant store models (app.models.tenant) are created at runtime
per tenant database and are deliberately not part of the registry metadata.
"""

from app.models.admin import Admin

__all__ = [
    "Admin",
]
