"""
Directory Admin API Router

Admin endpoints that act on directory accounts. Every mutation re-reads the
account and goes through the protection guard first.
"""

from fastapi import APIRouter, Depends, status
from structlog import get_logger

from ..auth.dependencies import require_admin
from ..dependencies import get_graph_client, get_protection_guard, get_tenant_registry
from ..errors import PortalError, ValidationError
from ..shared_services.passwords import check_password_complexity, generate_secure_password
from ..shared_services.protection import ProtectionGuard
from ..tenant_management.registry import TenantRegistry
from .graph_client import GraphClient
from .models import DirectoryAccount
from .schema import (
    AccountListResponse,
    LicenseChangeRequest,
    LicenseChangeResponse,
    PasswordResetRequest,
    PasswordResetResponse,
)

logger = get_logger()

router = APIRouter(prefix="/admin/api", tags=["Directory"], dependencies=[Depends(require_admin)])


@router.get("/users", response_model=AccountListResponse, summary="List accounts")
async def list_accounts(
    registry: TenantRegistry = Depends(get_tenant_registry),
    client: GraphClient = Depends(get_graph_client),
    guard: ProtectionGuard = Depends(get_protection_guard),
) -> AccountListResponse:
    """
    List accounts of every tenant.

    A tenant that cannot be listed is skipped and reported in
    ``failed_tenants``. Legacy reserved addresses are hidden; reserved
    names are flagged as protected.
    """
    accounts: list[DirectoryAccount] = []
    failed: list[str] = []

    for tenant in await registry.list_tenants():
        try:
            tenant_accounts = await client.list_accounts(tenant)
        except PortalError as e:
            logger.warning("account_listing_failed", tenant_id=tenant.id, error=e.message)
            failed.append(tenant.id)
            continue

        for account in tenant_accounts:
            if guard.is_hidden(account.principal_name):
                continue
            if guard.is_protected(account.principal_name):
                account = account.model_copy(update={"protected": True})
            accounts.append(account)

    accounts.sort(key=lambda a: a.created_at.timestamp() if a.created_at else 0.0, reverse=True)
    return AccountListResponse(accounts=accounts, total=len(accounts), failed_tenants=failed)


@router.delete(
    "/tenants/{tenant_id}/users/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete account",
)
async def delete_account(
    tenant_id: str,
    account_id: str,
    registry: TenantRegistry = Depends(get_tenant_registry),
    client: GraphClient = Depends(get_graph_client),
    guard: ProtectionGuard = Depends(get_protection_guard),
) -> None:
    tenant = await registry.require_tenant(tenant_id)
    await client.delete_account(tenant, account_id, guard)


@router.patch(
    "/tenants/{tenant_id}/users/{account_id}/password",
    response_model=PasswordResetResponse,
    summary="Reset account password",
)
async def reset_password(
    tenant_id: str,
    account_id: str,
    request: PasswordResetRequest,
    registry: TenantRegistry = Depends(get_tenant_registry),
    client: GraphClient = Depends(get_graph_client),
    guard: ProtectionGuard = Depends(get_protection_guard),
) -> PasswordResetResponse:
    """Set the given password, or generate one when none is supplied."""
    tenant = await registry.require_tenant(tenant_id)

    generated = not request.password
    if generated:
        password = generate_secure_password()
    else:
        password = request.password
        if not check_password_complexity(password):
            raise ValidationError(
                "Password needs at least 8 characters and three of: lowercase, uppercase, digits, symbols",
                code="weak_password",
            )

    address = await client.reset_password(tenant, account_id, password, guard)
    return PasswordResetResponse(address=address, password=password if generated else None)


@router.post(
    "/tenants/{tenant_id}/users/{account_id}/license",
    response_model=LicenseChangeResponse,
    summary="Assign or remove a license",
)
async def change_license(
    tenant_id: str,
    account_id: str,
    request: LicenseChangeRequest,
    registry: TenantRegistry = Depends(get_tenant_registry),
    client: GraphClient = Depends(get_graph_client),
    guard: ProtectionGuard = Depends(get_protection_guard),
) -> LicenseChangeResponse:
    tenant = await registry.require_tenant(tenant_id)
    sku_id = registry.resolve_sku(tenant, request.sku_name)
    address = await client.ensure_mutable(tenant, account_id, guard)

    if request.remove:
        await client.remove_license(tenant, account_id, sku_id)
    else:
        await client.assign_license(tenant, account_id, sku_id)

    return LicenseChangeResponse(address=address, sku_name=request.sku_name, assigned=not request.remove)
