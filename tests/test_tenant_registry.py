import pytest

from portal_core.config import PortalConfig
from portal_core.errors import ConfigError, NotFoundError, ValidationError
from portal_core.tenant_management.models import Tenant, normalize_sku_map
from portal_core.tenant_management.registry import TenantRegistry

from .conftest import T1, T2


async def test_create_and_get(registry, tenant):
    assert tenant.created_at is not None
    fetched = await registry.get_tenant("t1")
    assert fetched.default_domain == "t1.example.com"
    assert fetched.address_for("alice42") == "alice42@t1.example.com"


async def test_duplicate_id_rejected(registry, tenant):
    with pytest.raises(ValidationError):
        await registry.create_tenant(Tenant(**T1))


async def test_list_preserves_insertion_order(registry, tenant):
    await registry.create_tenant(Tenant(**T2))
    assert [t.id for t in await registry.list_tenants()] == ["t1", "t2"]


async def test_update_merges_fields(registry, tenant):
    updated = await registry.update_tenant("t1", {"label": "Renamed", "client_secret": None})
    assert updated.label == "Renamed"
    assert updated.client_secret == "secret-1"
    assert updated.updated_at >= tenant.updated_at


async def test_update_normalizes_sku_map(registry, tenant):
    updated = await registry.update_tenant("t1", {"sku_map": ["not", "an", "object"]})
    assert updated.sku_map == {}


async def test_missing_tenant_raises_not_found(registry):
    assert await registry.get_tenant("nope") is None
    with pytest.raises(NotFoundError):
        await registry.require_tenant("nope")
    with pytest.raises(NotFoundError):
        await registry.update_tenant("nope", {"label": "x"})
    with pytest.raises(NotFoundError):
        await registry.delete_tenant("nope")


async def test_delete(registry, tenant):
    await registry.delete_tenant("t1")
    assert not await registry.tenant_exists("t1")


def test_sku_map_normalization_drops_malformed_entries():
    assert normalize_sku_map("E5=sku") == {}
    assert normalize_sku_map(None) == {}
    assert normalize_sku_map({"E5": "sku-123", "": "x", "A1": "", "B": 3, " P1 ": " sku-9 "}) == {
        "E5": "sku-123",
        "P1": "sku-9",
    }


async def test_resolve_sku(tenant):
    assert TenantRegistry.resolve_sku(tenant, "E5") == "sku-123"
    with pytest.raises(ValidationError) as exc:
        TenantRegistry.resolve_sku(tenant, "P2")
    assert exc.value.message == "Unknown subscription type"


def test_domain_is_normalized():
    tenant = Tenant(**{**T1, "default_domain": "@T1.Example.com"})
    assert tenant.default_domain == "t1.example.com"


async def test_bootstrap_tenant_seeded_from_environment(store):
    config = PortalConfig(
        _env_file=None,
        azure_tenant_id="dir-env",
        azure_client_id="client-env",
        azure_client_secret="secret-env",
        default_domain="env.example.com",
        sku_map='{"E5": "sku-env", "bad": 1}',
    )
    registry = TenantRegistry(store, config)

    seeded = await registry.seed_bootstrap_tenant()
    assert seeded.id == "default"
    assert seeded.sku_map == {"E5": "sku-env"}

    # only seeds into an empty registry
    assert await registry.seed_bootstrap_tenant() is None


async def test_bootstrap_tolerates_invalid_sku_json(store):
    config = PortalConfig(
        _env_file=None,
        azure_tenant_id="dir-env",
        azure_client_id="client-env",
        azure_client_secret="secret-env",
        default_domain="env.example.com",
        sku_map="{not json",
    )
    seeded = await TenantRegistry(store, config).seed_bootstrap_tenant()
    assert seeded.sku_map == {}


async def test_no_bootstrap_without_credentials(registry):
    assert await registry.seed_bootstrap_tenant() is None


async def test_malformed_stored_records_raise_config_error(registry, store):
    await store.put("tenants", [{"id": "t1", "label": "missing credentials"}])

    with pytest.raises(ConfigError) as exc:
        await registry.list_tenants()
    assert exc.value.status_code == 500
    with pytest.raises(ConfigError):
        await registry.create_tenant(Tenant(**T2))
