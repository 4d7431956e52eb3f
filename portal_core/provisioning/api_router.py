"""
Registration API Router

Public endpoints: registration options and account registration.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import PortalConfig
from ..dependencies import (
    get_captcha_verifier,
    get_graph_client,
    get_invite_ledger,
    get_portal_config,
    get_site_settings,
    get_tenant_registry,
)
from ..directory.graph_client import GraphClient
from ..invites.ledger import InviteLedger
from ..shared_services.captcha import CaptchaVerifier
from ..shared_services.request_context import client_ip
from ..shared_services.site_settings import SiteSettings
from ..tenant_management.registry import TenantRegistry
from ..tenant_management.schema import TenantOption
from .models import ProvisioningAttempt, ProvisioningResult, RegistrationOptions, RegistrationRequest
from .workflow import ProvisioningWorkflow

router = APIRouter(tags=["Registration"])


def get_provisioning_workflow(
    registry: TenantRegistry = Depends(get_tenant_registry),
    ledger: InviteLedger = Depends(get_invite_ledger),
    captcha: CaptchaVerifier = Depends(get_captcha_verifier),
    client: GraphClient = Depends(get_graph_client),
    settings: SiteSettings = Depends(get_site_settings),
    config: PortalConfig = Depends(get_portal_config),
) -> ProvisioningWorkflow:
    """Dependency to get a workflow bound to this request's settings."""
    return ProvisioningWorkflow(registry, ledger, captcha, client, settings, config)


@router.get("/api/options", response_model=RegistrationOptions, summary="Registration options")
async def registration_options(
    registry: TenantRegistry = Depends(get_tenant_registry),
    settings: SiteSettings = Depends(get_site_settings),
    config: PortalConfig = Depends(get_portal_config),
) -> RegistrationOptions:
    """Tenants and SKUs a registrant can choose from."""
    tenants = await registry.list_tenants()
    return RegistrationOptions(
        tenants=[
            TenantOption(id=t.id, label=t.label, domain=t.default_domain, sku_names=t.sku_names())
            for t in tenants
        ],
        invite_required=settings.invite_required,
        captcha_site_key=config.turnstile_site_key if config.captcha_enabled else None,
    )


@router.post(
    "/",
    response_model=ProvisioningResult,
    summary="Register account",
    description="Create a licensed directory account. The status code follows the outcome.",
)
async def register(
    request: Request,
    registration: RegistrationRequest,
    workflow: ProvisioningWorkflow = Depends(get_provisioning_workflow),
) -> JSONResponse:
    attempt = ProvisioningAttempt.from_request(registration, remote_ip=client_ip(request))
    result = await workflow.run(attempt)
    return JSONResponse(
        status_code=result.status_code,
        content=result.model_dump(mode="json"),
    )
