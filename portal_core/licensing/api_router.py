"""
Licensing API Router
"""

from fastapi import APIRouter, Depends

from ..auth.dependencies import require_admin
from ..dependencies import get_graph_client, get_tenant_registry
from ..directory.graph_client import GraphClient
from ..tenant_management.registry import TenantRegistry
from .accounting import LicenseReport, collect

router = APIRouter(prefix="/admin/api", tags=["Licensing"], dependencies=[Depends(require_admin)])


@router.get("/licenses", response_model=LicenseReport, summary="License seat summary")
async def list_licenses(
    registry: TenantRegistry = Depends(get_tenant_registry),
    client: GraphClient = Depends(get_graph_client),
) -> LicenseReport:
    """Seat totals, usage and expirations across all tenants."""
    return await collect(registry, client)
