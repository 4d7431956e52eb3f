"""
Site Settings

Administrator-editable runtime settings kept in the key-value store.
Each request reads a fresh, frozen snapshot; nothing is cached in-process.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from structlog import get_logger

from ..config import PortalConfig, get_config
from ..errors import ValidationError
from ..storage import KeyValueStore, update_with_retry

logger = get_logger()

SETTINGS_KEY = "settings"


def _normalize_names(values: list[str]) -> list[str]:
    seen = []
    for value in values:
        value = value.strip().lower()
        if value and value not in seen:
            seen.append(value)
    return seen


class SiteSettings(BaseModel):
    """Runtime settings snapshot."""

    model_config = ConfigDict(frozen=True)

    invite_required: bool = Field(default=False, description="Require an invite code to register")

    # Matched as exact local-part equality, despite the name
    protected_prefixes: list[str] = Field(
        default_factory=lambda: ["admin", "administrator", "root", "postmaster", "webmaster"],
        description="Reserved account local-parts",
    )
    protected_users: list[str] = Field(
        default_factory=list, description="Reserved full addresses (legacy)"
    )

    usage_location: Optional[str] = Field(
        default=None, description="Two-letter usage location for new accounts"
    )

    @field_validator("protected_prefixes", "protected_users")
    @classmethod
    def validate_names(cls, v: list[str]) -> list[str]:
        return _normalize_names(v)

    @field_validator("usage_location")
    @classmethod
    def validate_usage_location(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError("Usage location must be a two-letter country code")
        return v


class SiteSettingsUpdate(BaseModel):
    """Partial update of site settings."""

    invite_required: Optional[bool] = None
    protected_prefixes: Optional[list[str]] = None
    protected_users: Optional[list[str]] = None
    usage_location: Optional[str] = None


class SiteSettingsService:
    """Reads and writes the settings record."""

    def __init__(self, store: KeyValueStore, config: Optional[PortalConfig] = None):
        self.store = store
        self.config = config or get_config()

    async def get_settings(self) -> SiteSettings:
        """Fetch the current settings, falling back to defaults."""
        raw = await self.store.get(SETTINGS_KEY)
        return SiteSettings(**raw) if raw else SiteSettings()

    async def update_settings(self, update: SiteSettingsUpdate) -> SiteSettings:
        """
        Apply a partial update.

        Args:
            update: Fields to change; unset fields keep their value

        Returns:
            The new settings snapshot
        """
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        # validate before touching the store
        try:
            SiteSettings(**changes)
        except PydanticValidationError as e:
            raise ValidationError(str(e.errors()[0]["msg"]), code="invalid_settings") from e

        def mutate(raw):
            current = SiteSettings(**raw) if raw else SiteSettings()
            merged = current.model_dump()
            merged.update(changes)
            return SiteSettings(**merged).model_dump(mode="json")

        raw = await update_with_retry(
            self.store,
            SETTINGS_KEY,
            mutate,
            attempts=self.config.store_conflict_retries,
        )
        logger.info("site_settings_updated", fields=sorted(changes))
        return SiteSettings(**raw)
