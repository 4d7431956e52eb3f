"""
Tenant Data Models

Defines the tenant record: one set of directory credentials with its own
domain and SKU catalogue.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


def normalize_sku_map(value: Any) -> dict[str, str]:
    """
    Coerce free-form SKU input into a name -> SKU id mapping.

    Anything that is not a JSON object becomes an empty mapping, and entries
    whose name or id is not a non-empty string are dropped.
    """
    if not isinstance(value, dict):
        return {}

    sku_map = {}
    for name, sku_id in value.items():
        if not isinstance(name, str) or not isinstance(sku_id, str):
            continue
        name, sku_id = name.strip(), sku_id.strip()
        if name and sku_id:
            sku_map[name] = sku_id
    return sku_map


def validate_tenant_id(v: str) -> str:
    """Ensure tenant ID is URL-safe."""
    if not v or not v.replace("-", "").replace("_", "").isalnum():
        raise ValueError("Tenant ID must contain only alphanumeric characters, hyphens, and underscores")
    return v


def validate_domain(v: str) -> str:
    """Strip a leading '@' and lower-case the domain."""
    v = v.strip().lstrip("@").lower()
    if not v or "." not in v or "@" in v:
        raise ValueError("Default domain must look like 'example.com'")
    return v


class Tenant(BaseModel):
    """
    Tenant model representing one directory.

    Stored in the tenant list of the key-value store.
    """

    id: str = Field(..., description="Unique tenant identifier")
    label: str = Field(..., description="Display name shown to registrants")

    # Directory credentials
    client_id: str = Field(..., description="OAuth client (application) ID")
    client_secret: str = Field(..., description="OAuth client secret")
    directory_id: str = Field(..., description="Directory (tenant) ID at the provider")

    # Routing
    default_domain: str = Field(..., description="Domain appended to new account names")
    sku_map: dict[str, str] = Field(default_factory=dict, description="SKU name -> SKU id")

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return validate_tenant_id(v)

    @field_validator("default_domain")
    @classmethod
    def validate_default_domain(cls, v: str) -> str:
        return validate_domain(v)

    @field_validator("sku_map", mode="before")
    @classmethod
    def validate_sku_map(cls, v: Any) -> dict[str, str]:
        """Normalize malformed SKU input instead of rejecting it."""
        return normalize_sku_map(v)

    def address_for(self, username: str) -> str:
        """Build the full account address in this tenant's domain."""
        return f"{username}@{self.default_domain}"

    def sku_names(self) -> list[str]:
        return list(self.sku_map.keys())

    class Config:
        """Pydantic configuration."""

        json_schema_extra = {
            "example": {
                "id": "t1",
                "label": "Contoso",
                "client_id": "00000000-0000-0000-0000-000000000000",
                "client_secret": "***",
                "directory_id": "11111111-1111-1111-1111-111111111111",
                "default_domain": "t1.example.com",
                "sku_map": {"E5": "sku-123"},
            }
        }
