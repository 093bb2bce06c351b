"""Database engines and connections.

Imports are intentionally NOT eagerly loaded here so importing a model does
not create an engine. Use explicit imports:
``from app.db.registry import get_async_session``,
``from app.db.tenants import TenantConnectionManager``.
"""
