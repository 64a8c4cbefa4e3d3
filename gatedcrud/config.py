"""
Library configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from the environment (``GATEDCRUD_*``)."""

    model_config = SettingsConfigDict(
        env_prefix="GATEDCRUD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True

    # ==========================================================================
    # Authorization
    # ==========================================================================

    # Dotted path of the core authorizer class used by DefaultAuthorizer,
    # e.g. "gatedcrud.auth.authorizer:PermissionSetAuthorizer"
    default_authorizer: str | None = None
    admin_group: str = "admin"

    # ==========================================================================
    # Queries
    # ==========================================================================

    default_limit: int = 30

    # ==========================================================================
    # Pub/sub
    # ==========================================================================

    # When set, the originating socket also receives its own notifications
    mirror: bool = False
    auto_watch: bool = True

    # ==========================================================================
    # HTTP host
    # ==========================================================================

    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
