"""
FastAPI Dependencies

Builds per-request services from the long-lived objects kept on
``app.state`` (store, directory client, CAPTCHA verifier).
"""

from fastapi import Depends, Request

from .config import PortalConfig
from .directory.graph_client import GraphClient
from .invites.ledger import InviteLedger
from .shared_services.captcha import CaptchaVerifier
from .shared_services.protection import ProtectionGuard
from .shared_services.site_settings import SiteSettings, SiteSettingsService
from .storage import KeyValueStore
from .tenant_management.registry import TenantRegistry


def get_portal_config(request: Request) -> PortalConfig:
    return request.app.state.config


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_graph_client(request: Request) -> GraphClient:
    return request.app.state.graph_client


def get_captcha_verifier(request: Request) -> CaptchaVerifier:
    return request.app.state.captcha_verifier


def get_tenant_registry(
    store: KeyValueStore = Depends(get_store),
    config: PortalConfig = Depends(get_portal_config),
) -> TenantRegistry:
    """Dependency to get the tenant registry."""
    return TenantRegistry(store, config)


def get_invite_ledger(
    store: KeyValueStore = Depends(get_store),
    registry: TenantRegistry = Depends(get_tenant_registry),
    config: PortalConfig = Depends(get_portal_config),
) -> InviteLedger:
    """Dependency to get the invite ledger."""
    return InviteLedger(store, registry, config)


def get_settings_service(
    store: KeyValueStore = Depends(get_store),
    config: PortalConfig = Depends(get_portal_config),
) -> SiteSettingsService:
    return SiteSettingsService(store, config)


async def get_site_settings(
    service: SiteSettingsService = Depends(get_settings_service),
) -> SiteSettings:
    """Fresh settings snapshot for this request."""
    return await service.get_settings()


def get_protection_guard(
    settings: SiteSettings = Depends(get_site_settings),
    config: PortalConfig = Depends(get_portal_config),
) -> ProtectionGuard:
    """Protection guard rebuilt from this request's settings snapshot."""
    return ProtectionGuard.from_settings(settings, config)
