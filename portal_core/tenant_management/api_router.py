"""
Tenant Management API Router

Admin endpoints for directory tenant CRUD.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from structlog import get_logger

from ..auth.dependencies import require_admin
from ..dependencies import get_tenant_registry
from .models import Tenant
from .registry import TenantRegistry
from .schema import (
    TenantCreateRequest,
    TenantListResponse,
    TenantResponse,
    TenantUpdateRequest,
)

logger = get_logger()

router = APIRouter(
    prefix="/admin/api/tenants",
    tags=["Tenant Management"],
    dependencies=[Depends(require_admin)],
)


@router.get(
    "",
    response_model=TenantListResponse,
    summary="List tenants",
)
async def list_tenants(
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> TenantListResponse:
    """List all tenants. Client secrets are masked."""
    tenants = await registry.list_tenants()
    return TenantListResponse(
        tenants=[TenantResponse.from_tenant(t) for t in tenants],
        total=len(tenants),
    )


@router.post(
    "",
    response_model=TenantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create tenant",
    description="Register directory credentials and the SKU catalogue for a tenant",
)
async def create_tenant(
    request: TenantCreateRequest,
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> TenantResponse:
    logger.info("creating_tenant", tenant_id=request.id, label=request.label)
    tenant = await registry.create_tenant(Tenant(**request.model_dump()))
    return TenantResponse.from_tenant(tenant)


@router.get(
    "/{tenant_id}",
    response_model=TenantResponse,
    summary="Get tenant by ID",
)
async def get_tenant(
    tenant_id: str,
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> TenantResponse:
    """Get tenant details by ID."""
    return TenantResponse.from_tenant(await registry.require_tenant(tenant_id))


@router.patch(
    "/{tenant_id}",
    response_model=TenantResponse,
    summary="Update tenant",
)
async def update_tenant(
    tenant_id: str,
    request: TenantUpdateRequest,
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> TenantResponse:
    """Update tenant credentials, domain or SKU catalogue."""
    update_data = request.model_dump(exclude_unset=True, exclude_none=True)

    if not update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )

    tenant = await registry.update_tenant(tenant_id, update_data)
    return TenantResponse.from_tenant(tenant)


@router.delete(
    "/{tenant_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete tenant",
    description="Remove a tenant record. Invite codes scoped to it stop matching.",
)
async def delete_tenant(
    tenant_id: str,
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> None:
    await registry.delete_tenant(tenant_id)
