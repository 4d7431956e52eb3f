"""
Invite API Schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .ledger import MAX_BATCH_SIZE, MAX_CODE_LENGTH, MIN_CODE_LENGTH
from .models import CharClass, InviteCode, InviteScope


class GenerateInvitesRequest(BaseModel):
    """Request model for generating a batch of invite codes."""

    char_classes: list[CharClass] = Field(
        default_factory=lambda: [CharClass.UPPERCASE, CharClass.DIGITS],
        description="Character classes to draw from",
    )
    length: int = Field(default=8, ge=MIN_CODE_LENGTH, le=MAX_CODE_LENGTH)
    quantity: int = Field(default=1, ge=1, le=MAX_BATCH_SIZE)
    per_code_limit: int = Field(default=1, ge=1, description="Redemptions allowed per code")
    allowed_scopes: list[InviteScope] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "char_classes": ["uppercase", "digits"],
                "length": 10,
                "quantity": 5,
                "per_code_limit": 1,
                "allowed_scopes": [{"tenant_id": "t1", "sku_name": "E5"}],
            }
        }


class BulkDeleteRequest(BaseModel):
    codes: list[str] = Field(..., min_length=1)


class InviteResponse(BaseModel):
    """Response model for one invite code."""

    code: str
    limit: int
    used: int
    remaining: int
    created_at: datetime
    used_at: Optional[datetime] = None
    allowed_scopes: list[InviteScope]

    @classmethod
    def from_invite(cls, invite: InviteCode) -> "InviteResponse":
        return cls(
            code=invite.code,
            limit=invite.limit,
            used=invite.used,
            remaining=invite.remaining,
            created_at=invite.created_at,
            used_at=invite.used_at,
            allowed_scopes=invite.allowed_scopes,
        )


class InviteListResponse(BaseModel):
    invites: list[InviteResponse]
    total: int


class BulkDeleteResponse(BaseModel):
    deleted: int
