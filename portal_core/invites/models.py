"""
Invite Code Models

Defines invite codes and the (tenant, SKU) scopes they may be redeemed for.
"""

import string
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CharClass(str, Enum):
    """Character classes invite codes can be drawn from."""

    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    DIGITS = "digits"

    @property
    def alphabet(self) -> str:
        return {
            CharClass.UPPERCASE: string.ascii_uppercase,
            CharClass.LOWERCASE: string.ascii_lowercase,
            CharClass.DIGITS: string.digits,
        }[self]


class InviteScope(BaseModel):
    """A (tenant, SKU) pair an invite code is valid for."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(..., min_length=1)
    sku_name: str = Field(..., min_length=1)


class InviteCode(BaseModel):
    """
    Invite code ledger entry.

    ``used`` never exceeds ``limit``; redemption is the only mutation.
    """

    code: str = Field(..., min_length=1)
    limit: int = Field(..., ge=1, description="Maximum number of redemptions")
    used: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    used_at: Optional[datetime] = Field(default=None, description="Last redemption time")
    allowed_scopes: list[InviteScope] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_usage(self) -> "InviteCode":
        if self.used > self.limit:
            raise ValueError("used must not exceed limit")
        return self

    @property
    def remaining(self) -> int:
        return self.limit - self.used

    @property
    def is_exhausted(self) -> bool:
        return self.used >= self.limit

    def allows(self, tenant_id: str, sku_name: str) -> bool:
        """Check if the code may be redeemed for a tenant and SKU."""
        return InviteScope(tenant_id=tenant_id, sku_name=sku_name) in self.allowed_scopes
