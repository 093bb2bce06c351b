"""Password hashing and JWT utilities."""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import ConfigurationError, UnauthorizedError

ROLE_SUPERADMIN = "superadmin"
ROLE_ADMIN = "admin"
ROLES = frozenset({ROLE_SUPERADMIN, ROLE_ADMIN})

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class Principal:
    """Identity decoded from a bearer token."""

    role: str
    username: str
    tenant_db_name: str | None = None
    admin_id: str | None = None


def hash_password(password: str) -> str:
    """Hash a plaintext password for storage."""
    return str(pwd_context.hash(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against its stored hash."""
    try:
        return bool(pwd_context.verify(plain_password, hashed_password))
    except (ValueError, TypeError):
        # Unrecognised or corrupt hash
        return False


def superadmin_configured() -> bool:
    return bool(settings.superadmin_user and settings.superadmin_pass)


def check_superadmin_credentials(username: str, password: str) -> bool:
    """Compare against the bootstrap superadmin credentials."""
    if not superadmin_configured():
        raise ConfigurationError("SuperAdmin credentials are not configured")
    user_ok = secrets.compare_digest(username.encode(), settings.superadmin_user.encode())
    pass_ok = secrets.compare_digest(password.encode(), settings.superadmin_pass.encode())
    return user_ok and pass_ok


def _signing_key() -> str:
    if not settings.jwt_secret_key:
        raise ConfigurationError("JWT_SECRET_KEY is not configured")
    return settings.jwt_secret_key


def create_access_token(
    principal: Principal,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT carrying role and tenant identity."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.jwt_expire_hours)
    )
    claims: dict[str, Any] = {
        "sub": principal.username,
        "role": principal.role,
        "exp": expire,
    }
    if principal.tenant_db_name is not None:
        claims["tenantDbName"] = principal.tenant_db_name
    if principal.admin_id is not None:
        claims["adminId"] = principal.admin_id
    return jwt.encode(claims, _signing_key(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Principal:
    """Decode and validate a JWT. Raises UnauthorizedError on any failure."""
    key = _signing_key()
    try:
        claims = jwt.decode(token, key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise UnauthorizedError("Invalid token") from e

    role = claims.get("role")
    if role not in ROLES:
        raise UnauthorizedError("Invalid token")

    principal = Principal(
        role=role,
        username=str(claims.get("sub", "")),
        tenant_db_name=claims.get("tenantDbName"),
        admin_id=claims.get("adminId"),
    )
    if role == ROLE_ADMIN and (not principal.tenant_db_name or not principal.admin_id):
        raise UnauthorizedError("Invalid token")
    return principal
