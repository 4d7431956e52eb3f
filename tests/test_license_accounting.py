from datetime import datetime

from portal_core.directory.models import LicenseSku, SubscriptionRecord
from portal_core.licensing.accounting import collect, remaining_seats, summarize
from portal_core.tenant_management.models import Tenant

from .conftest import T2


def test_remaining_is_never_negative():
    assert remaining_seats(10, 15) == 0
    assert remaining_seats(10, 4) == 6


def test_summaries_sorted_by_remaining_then_name():
    skus = [
        LicenseSku(sku_id="a", sku_part_number="ZETA", total=10, used=15),
        LicenseSku(sku_id="b", sku_part_number="BETA", total=25, used=5),
        LicenseSku(sku_id="c", sku_part_number="ALPHA", total=20, used=0),
    ]
    summaries = summarize(skus)

    assert [s.sku_part_number for s in summaries] == ["ALPHA", "BETA", "ZETA"]
    assert summaries[-1].remaining == 0


def test_expiration_is_earliest_lifecycle_date():
    skus = [LicenseSku(sku_id="a", sku_part_number="E5", total=5, used=1)]
    subscriptions = [
        SubscriptionRecord(sku_id="a", next_lifecycle_at=datetime(2027, 3, 1)),
        SubscriptionRecord(sku_id="a", next_lifecycle_at=datetime(2026, 12, 1)),
        SubscriptionRecord(sku_id="a", next_lifecycle_at=None),
        SubscriptionRecord(sku_id="other", next_lifecycle_at=datetime(2020, 1, 1)),
    ]
    [summary] = summarize(skus, subscriptions, tenant_id="t1")

    assert summary.expires_at == datetime(2026, 12, 1)
    assert summary.tenant_id == "t1"


def test_sku_from_graph_payload():
    sku = LicenseSku.from_graph(
        {
            "skuId": "sku-123",
            "skuPartNumber": "ENTERPRISEPREMIUM",
            "prepaidUnits": {"enabled": 10, "suspended": 0},
            "consumedUnits": 15,
        }
    )
    assert (sku.total, sku.used) == (10, 15)
    assert summarize([sku])[0].remaining == 0


async def test_collect_skips_failing_tenant(registry, graph_client, directory, tenant):
    await registry.create_tenant(Tenant(**T2))
    directory.skus["dir-1"] = [
        {"skuId": "sku-123", "skuPartNumber": "E5", "prepaidUnits": {"enabled": 10}, "consumedUnits": 3}
    ]
    directory.subscriptions["dir-1"] = [{"skuId": "sku-123", "nextLifecycleDateTime": "2026-12-01T00:00:00Z"}]
    directory.unavailable_directories.add("dir-2")

    report = await collect(registry, graph_client)

    assert report.failed_tenants == ["t2"]
    [summary] = report.licenses
    assert summary.tenant_id == "t1"
    assert summary.remaining == 7
    assert summary.expires_at.year == 2026
