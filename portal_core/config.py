"""
Portal Configuration Management

Centralizes environment configuration for the self-service portal.
Directory credentials and secrets come from the environment (or .env).

Runtime settings that the administrator edits (invite mode, protected names)
live in the key-value store, see ``shared_services.site_settings``.
"""

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""

    LOCAL = "local"
    DEV = "dev"
    PROD = "prod"


class StoreBackend(str, Enum):
    """Key-value store implementations."""

    MEMORY = "memory"
    REDIS = "redis"


class PortalConfig(BaseSettings):
    """
    Portal-wide configuration settings.

    Read from environment variables, falling back to a .env file.
    Tenant credentials other than the bootstrap tenant live in the store.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Field(default=Environment.LOCAL)

    # Key-value store
    store_backend: StoreBackend = Field(default=StoreBackend.MEMORY)
    redis_url: str = Field(default="redis://localhost:6379/0")
    store_key_prefix: str = Field(default="portal")
    store_conflict_retries: int = Field(default=10, ge=1)

    # Security
    jwt_secret_key: str = Field(default="change-me-in-production")
    jwt_algorithm: str = Field(default="HS256")
    session_ttl_seconds: int = Field(default=8 * 3600, ge=60)

    # Directory (Microsoft Graph)
    graph_base_url: str = Field(default="https://graph.microsoft.com/v1.0")
    login_base_url: str = Field(default="https://login.microsoftonline.com")
    graph_scope: str = Field(default="https://graph.microsoft.com/.default")
    graph_token_cache_enabled: bool = Field(default=False)
    default_usage_location: str = Field(default="CN")
    http_timeout_seconds: float = Field(default=30.0)

    # CAPTCHA (Cloudflare Turnstile)
    turnstile_secret_key: Optional[str] = Field(default=None)
    turnstile_site_key: Optional[str] = Field(default=None)
    turnstile_verify_url: str = Field(
        default="https://challenges.cloudflare.com/turnstile/v0/siteverify"
    )

    # Legacy single hidden account (full address)
    hidden_user: Optional[str] = Field(default=None)

    # Bootstrap tenant, seeded on install when fully configured
    azure_tenant_id: Optional[str] = Field(default=None)
    azure_client_id: Optional[str] = Field(default=None)
    azure_client_secret: Optional[str] = Field(default=None)
    default_domain: Optional[str] = Field(default=None)
    sku_map: str = Field(default="{}")

    # Logging
    log_level: str = Field(default="INFO")

    # CORS Configuration
    allowed_origins: str = Field(default="http://localhost:3000")

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        """Refuse the placeholder signing key outside local development."""
        env = info.data.get("environment", Environment.LOCAL)
        if env != Environment.LOCAL and v == "change-me-in-production":
            raise ValueError("jwt_secret_key must be set in non-local environments")
        return v

    def get_allowed_origins_list(self) -> list[str]:
        """Split the comma-separated CORS origins."""
        if self.environment == Environment.LOCAL:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def captcha_enabled(self) -> bool:
        """CAPTCHA is enforced only when a verifier secret is configured."""
        return bool(self.turnstile_secret_key)

    @property
    def has_bootstrap_tenant(self) -> bool:
        """Check if the environment carries a complete bootstrap tenant."""
        return all(
            [
                self.azure_tenant_id,
                self.azure_client_id,
                self.azure_client_secret,
                self.default_domain,
            ]
        )

    @property
    def is_production(self) -> bool:
        """True in the prod environment."""
        return self.environment == Environment.PROD

    @property
    def is_local(self) -> bool:
        """True in local development."""
        return self.environment == Environment.LOCAL


@lru_cache()
def get_config() -> PortalConfig:
    """
    Get cached portal configuration.

    The environment is read once per process.
    """
    return PortalConfig()
