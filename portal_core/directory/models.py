"""
Directory Data Models

Typed views of the directory's user, SKU and subscription resources.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class DirectoryAccount(BaseModel):
    """A user object as listed from the directory, tagged with its tenant."""

    id: str
    display_name: Optional[str] = Field(default=None)
    principal_name: str
    created_at: Optional[datetime] = Field(default=None)
    assigned_sku_ids: list[str] = Field(default_factory=list)

    tenant_id: Optional[str] = Field(default=None, description="Originating tenant")
    protected: bool = Field(default=False, description="Matches a reserved name")

    @classmethod
    def from_graph(cls, item: dict[str, Any], tenant_id: Optional[str] = None) -> "DirectoryAccount":
        return cls(
            id=item["id"],
            display_name=item.get("displayName"),
            principal_name=item.get("userPrincipalName") or "",
            created_at=item.get("createdDateTime"),
            assigned_sku_ids=[
                lic["skuId"] for lic in item.get("assignedLicenses") or [] if lic.get("skuId")
            ],
            tenant_id=tenant_id,
        )


class LicenseSku(BaseModel):
    """Seat inventory of one subscribed SKU."""

    sku_id: str
    sku_part_number: str
    total: int = Field(default=0, description="Prepaid (enabled) seats")
    used: int = Field(default=0, description="Consumed seats")

    @classmethod
    def from_graph(cls, item: dict[str, Any]) -> "LicenseSku":
        prepaid = item.get("prepaidUnits") or {}
        return cls(
            sku_id=item["skuId"],
            sku_part_number=item.get("skuPartNumber") or item["skuId"],
            total=int(prepaid.get("enabled") or 0),
            used=int(item.get("consumedUnits") or 0),
        )


class SubscriptionRecord(BaseModel):
    """Lifecycle record of a commerce subscription."""

    sku_id: str
    next_lifecycle_at: Optional[datetime] = Field(default=None)

    @classmethod
    def from_graph(cls, item: dict[str, Any]) -> "SubscriptionRecord":
        return cls(
            sku_id=item["skuId"],
            next_lifecycle_at=item.get("nextLifecycleDateTime"),
        )
