"""
Directory Admin API Schemas
"""

from typing import Optional

from pydantic import BaseModel, Field

from .models import DirectoryAccount


class AccountListResponse(BaseModel):
    """Accounts across all tenants. Tenants that failed to list are named."""

    accounts: list[DirectoryAccount]
    total: int
    failed_tenants: list[str] = Field(default_factory=list)


class PasswordResetRequest(BaseModel):
    """Leave ``password`` empty to have one generated."""

    password: Optional[str] = Field(default=None, max_length=256)


class PasswordResetResponse(BaseModel):
    address: str
    password: Optional[str] = Field(default=None, description="Only set when the password was generated")


class LicenseChangeRequest(BaseModel):
    sku_name: str = Field(..., min_length=1)
    remove: bool = Field(default=False, description="Remove the license instead of assigning it")


class LicenseChangeResponse(BaseModel):
    address: str
    sku_name: str
    assigned: bool
