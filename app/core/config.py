"""Application configuration via pydantic-settings.

Values come from the project-root .env, falling back to the process
environment. Secrets (JWT key, superadmin password) have no defaults; the
lifespan logs any required setting that is still empty.
"""

from pathlib import Path
from typing import Tuple, Type

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# Resolve .env from project root (two levels up from this file: app/core/config.py → project root)
_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

REQUIRED_SETTINGS = (
    "database_url",
    "jwt_secret_key",
    "superadmin_user",
    "superadmin_pass",
)


class Settings(BaseSettings):
    """Process-wide settings. A value in .env beats the same OS env var."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Override source priority: .env file > OS env vars > defaults."""
        return (init_settings, dotenv_settings, env_settings, file_secret_settings)

    # --- Backing store ---
    # Registry database URL. Tenant databases are siblings on the same server.
    database_url: str = ""

    # --- Auth ---
    jwt_secret_key: str = ""
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24
    superadmin_user: str = ""
    superadmin_pass: str = ""

    # --- Tenancy ---
    schema_refresh_on_update: bool = False

    # --- App ---
    cors_origin: str = "*"
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]

    def missing_required(self) -> list[str]:
        """Names of required settings that are empty, upper-cased as env vars."""
        return [name.upper() for name in REQUIRED_SETTINGS if not getattr(self, name)]


settings = Settings()
