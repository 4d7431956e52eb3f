"""
Tenant Management API Schemas

Request and response models for tenant management endpoints.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .models import Tenant, normalize_sku_map, validate_domain, validate_tenant_id


class TenantCreateRequest(BaseModel):
    """Request model for registering a directory tenant."""

    id: str = Field(..., min_length=1, max_length=64, description="Unique tenant identifier")
    label: str = Field(..., min_length=1, max_length=100, description="Display name")

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    directory_id: str = Field(..., min_length=1)

    default_domain: str = Field(..., description="Domain for new accounts")
    sku_map: Any = Field(default_factory=dict, description="SKU name -> SKU id")

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
        return normalize_sku_map(v)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "t1",
                "label": "Contoso",
                "client_id": "00000000-0000-0000-0000-000000000000",
                "client_secret": "secret",
                "directory_id": "11111111-1111-1111-1111-111111111111",
                "default_domain": "t1.example.com",
                "sku_map": {"E5": "sku-123"},
            }
        }


class TenantUpdateRequest(BaseModel):
    """Request model for updating an existing tenant."""

    label: Optional[str] = Field(default=None, min_length=1, max_length=100)
    client_id: Optional[str] = Field(default=None, min_length=1)
    client_secret: Optional[str] = Field(default=None, min_length=1)
    directory_id: Optional[str] = Field(default=None, min_length=1)
    default_domain: Optional[str] = Field(default=None)
    sku_map: Optional[Any] = Field(default=None)

    @field_validator("default_domain")
    @classmethod
    def validate_default_domain(cls, v: Optional[str]) -> Optional[str]:
        return validate_domain(v) if v is not None else v

    @field_validator("sku_map", mode="before")
    @classmethod
    def validate_sku_map(cls, v: Any) -> Optional[dict[str, str]]:
        return normalize_sku_map(v) if v is not None else None


class TenantResponse(BaseModel):
    """Response model for tenant data. The client secret is never echoed."""

    id: str
    label: str
    client_id: str
    client_secret_set: bool
    directory_id: str
    default_domain: str
    sku_map: dict[str, str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "TenantResponse":
        return cls(
            id=tenant.id,
            label=tenant.label,
            client_id=tenant.client_id,
            client_secret_set=bool(tenant.client_secret),
            directory_id=tenant.directory_id,
            default_domain=tenant.default_domain,
            sku_map=tenant.sku_map,
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
        )


class TenantListResponse(BaseModel):
    """Response model for tenant list."""

    tenants: list[TenantResponse]
    total: int


class TenantOption(BaseModel):
    """Public view of a tenant for the registration form."""

    id: str
    label: str
    domain: str
    sku_names: list[str]
