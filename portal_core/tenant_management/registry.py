"""
Tenant Registry

Handles CRUD operations for tenant records in the key-value store.
All tenants live in one list under a single key; every write is an
optimistic read-modify-write so concurrent admin edits cannot be lost.
"""

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from structlog import get_logger

from ..config import PortalConfig, get_config
from ..errors import ConfigError, NotFoundError, ValidationError
from ..storage import KeyValueStore, update_with_retry
from .models import Tenant, normalize_sku_map

logger = get_logger()

TENANTS_KEY = "tenants"


def _load(raw: Optional[list]) -> list[Tenant]:
    try:
        return [Tenant(**item) for item in (raw or [])]
    except (PydanticValidationError, TypeError) as e:
        logger.error("tenant_records_invalid", error=str(e))
        raise ConfigError("Stored tenant records are malformed") from e


def _dump(tenants: list[Tenant]) -> list[dict[str, Any]]:
    return [tenant.model_dump(mode="json") for tenant in tenants]


class TenantRegistry:
    """Store-backed service for tenant management."""

    def __init__(self, store: KeyValueStore, config: Optional[PortalConfig] = None):
        """
        Initialize tenant registry.

        Args:
            store: Key-value store holding the tenant list
            config: Portal configuration (uses cached config if not provided)
        """
        self.store = store
        self.config = config or get_config()

    async def _update(self, mutate) -> list[Tenant]:
        raw = await update_with_retry(
            self.store,
            TENANTS_KEY,
            mutate,
            attempts=self.config.store_conflict_retries,
        )
        return _load(raw)

    async def create_tenant(self, tenant: Tenant) -> Tenant:
        """
        Create a new tenant.

        Args:
            tenant: Tenant object to create

        Returns:
            Created tenant

        Raises:
            ValidationError: If the tenant ID already exists
        """
        now = datetime.utcnow()
        tenant = tenant.model_copy(update={"created_at": now, "updated_at": now})

        def mutate(raw):
            tenants = _load(raw)
            if any(t.id == tenant.id for t in tenants):
                raise ValidationError(f"Tenant with ID '{tenant.id}' already exists")
            tenants.append(tenant)
            return _dump(tenants)

        await self._update(mutate)
        logger.info("tenant_created", tenant_id=tenant.id, skus=len(tenant.sku_map))
        return tenant

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        """
        Get tenant by ID.

        Returns:
            Tenant if found, None otherwise
        """
        for tenant in await self.list_tenants():
            if tenant.id == tenant_id:
                return tenant
        return None

    async def require_tenant(self, tenant_id: str) -> Tenant:
        """Get tenant by ID or raise ``NotFoundError``."""
        tenant = await self.get_tenant(tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant '{tenant_id}' not found")
        return tenant

    async def list_tenants(self) -> list[Tenant]:
        """List all tenants in insertion order."""
        return _load(await self.store.get(TENANTS_KEY))

    async def update_tenant(self, tenant_id: str, update_data: dict) -> Tenant:
        """
        Update tenant fields.

        Args:
            tenant_id: Tenant identifier
            update_data: Fields to update; None values are ignored

        Returns:
            Updated tenant

        Raises:
            NotFoundError: If the tenant does not exist
        """
        changes = {k: v for k, v in update_data.items() if v is not None and k != "id"}
        if "sku_map" in changes:
            changes["sku_map"] = normalize_sku_map(changes["sku_map"])

        def mutate(raw):
            tenants = _load(raw)
            for index, tenant in enumerate(tenants):
                if tenant.id == tenant_id:
                    merged = tenant.model_dump()
                    merged.update(changes)
                    merged["updated_at"] = datetime.utcnow()
                    tenants[index] = Tenant(**merged)
                    return _dump(tenants)
            raise NotFoundError(f"Tenant '{tenant_id}' not found")

        tenants = await self._update(mutate)
        logger.info("tenant_updated", tenant_id=tenant_id, fields=sorted(changes))
        return next(t for t in tenants if t.id == tenant_id)

    async def delete_tenant(self, tenant_id: str) -> None:
        """
        Permanently delete a tenant record.

        Invite codes scoped to this tenant are left untouched; redeeming
        them afterwards fails with a scope mismatch.

        Raises:
            NotFoundError: If the tenant does not exist
        """

        def mutate(raw):
            tenants = _load(raw)
            remaining = [t for t in tenants if t.id != tenant_id]
            if len(remaining) == len(tenants):
                raise NotFoundError(f"Tenant '{tenant_id}' not found")
            return _dump(remaining)

        await self._update(mutate)
        logger.info("tenant_deleted", tenant_id=tenant_id)

    async def tenant_exists(self, tenant_id: str) -> bool:
        return await self.get_tenant(tenant_id) is not None

    @staticmethod
    def resolve_sku(tenant: Tenant, sku_name: str) -> str:
        """
        Look up the SKU id for a catalogue name.

        Raises:
            ValidationError: If the tenant has no such SKU
        """
        sku_id = tenant.sku_map.get(sku_name)
        if not sku_id:
            raise ValidationError("Unknown subscription type", code="unknown_sku")
        return sku_id

    async def seed_bootstrap_tenant(self) -> Optional[Tenant]:
        """
        Create the ``default`` tenant from environment settings.

        Only runs when the environment carries complete credentials and the
        registry is still empty.

        Returns:
            The seeded tenant, or None if nothing was seeded
        """
        if not self.config.has_bootstrap_tenant:
            return None
        if await self.list_tenants():
            return None

        try:
            sku_map = json.loads(self.config.sku_map or "{}")
        except json.JSONDecodeError:
            logger.warning("bootstrap_sku_map_invalid")
            sku_map = {}

        tenant = Tenant(
            id="default",
            label=self.config.default_domain,
            client_id=self.config.azure_client_id,
            client_secret=self.config.azure_client_secret,
            directory_id=self.config.azure_tenant_id,
            default_domain=self.config.default_domain,
            sku_map=sku_map,
        )
        return await self.create_tenant(tenant)
