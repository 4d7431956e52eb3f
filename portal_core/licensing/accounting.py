"""
License Accounting

Derives remaining seats and expirations from directory SKU data.
"""

from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field
from structlog import get_logger

from ..directory.graph_client import GraphClient
from ..directory.models import LicenseSku, SubscriptionRecord
from ..errors import PortalError
from ..tenant_management.registry import TenantRegistry

logger = get_logger()


class LicenseSummary(BaseModel):
    """Seat summary of one SKU in one tenant."""

    tenant_id: Optional[str] = Field(default=None)
    sku_id: str
    sku_part_number: str
    total: int
    used: int
    remaining: int = Field(..., ge=0)
    expires_at: Optional[datetime] = Field(default=None, description="Earliest next lifecycle date")


class LicenseReport(BaseModel):
    """Aggregated license summaries across tenants."""

    licenses: list[LicenseSummary]
    failed_tenants: list[str] = Field(default_factory=list)


def remaining_seats(total: int, used: int) -> int:
    """Seats left, never negative."""
    return max(0, total - used)


def earliest_expirations(records: Iterable[SubscriptionRecord]) -> dict[str, datetime]:
    """Earliest next lifecycle date per SKU id."""
    earliest: dict[str, datetime] = {}
    for record in records:
        if record.next_lifecycle_at is None:
            continue
        current = earliest.get(record.sku_id)
        if current is None or record.next_lifecycle_at < current:
            earliest[record.sku_id] = record.next_lifecycle_at
    return earliest


def sort_summaries(summaries: list[LicenseSummary]) -> list[LicenseSummary]:
    """Most remaining seats first, then by name."""
    return sorted(summaries, key=lambda s: (-s.remaining, s.sku_part_number))


def summarize(
    skus: Iterable[LicenseSku],
    subscriptions: Iterable[SubscriptionRecord] = (),
    tenant_id: Optional[str] = None,
) -> list[LicenseSummary]:
    """
    Build sorted seat summaries for one tenant.

    Args:
        skus: Subscribed SKUs with seat counts
        subscriptions: Subscription lifecycle records
        tenant_id: Tenant to tag each summary with

    Returns:
        Summaries sorted by remaining seats (descending), then name
    """
    expirations = earliest_expirations(subscriptions)
    summaries = [
        LicenseSummary(
            tenant_id=tenant_id,
            sku_id=sku.sku_id,
            sku_part_number=sku.sku_part_number,
            total=sku.total,
            used=sku.used,
            remaining=remaining_seats(sku.total, sku.used),
            expires_at=expirations.get(sku.sku_id),
        )
        for sku in skus
    ]
    return sort_summaries(summaries)


async def collect(registry: TenantRegistry, client: GraphClient) -> LicenseReport:
    """
    Gather license summaries from every tenant.

    A tenant whose SKU listing fails is skipped. Missing subscription
    records only drop the expiration dates for that tenant.
    """
    summaries: list[LicenseSummary] = []
    failed: list[str] = []

    for tenant in await registry.list_tenants():
        try:
            skus = await client.list_license_skus(tenant)
        except PortalError as e:
            logger.warning("license_listing_failed", tenant_id=tenant.id, error=e.message)
            failed.append(tenant.id)
            continue

        try:
            subscriptions = await client.list_subscription_expirations(tenant)
        except PortalError as e:
            logger.info("subscription_listing_failed", tenant_id=tenant.id, error=e.message)
            subscriptions = []

        summaries.extend(summarize(skus, subscriptions, tenant_id=tenant.id))

    return LicenseReport(licenses=sort_summaries(summaries), failed_tenants=failed)
