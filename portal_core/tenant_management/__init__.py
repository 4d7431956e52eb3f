"""
Tenant Management Module

Directory tenant records: credentials, default domain and SKU catalogue.
"""

from .models import Tenant, normalize_sku_map
from .registry import TenantRegistry
from .schema import TenantCreateRequest, TenantResponse, TenantUpdateRequest

__all__ = [
    "Tenant",
    "normalize_sku_map",
    "TenantRegistry",
    "TenantCreateRequest",
    "TenantResponse",
    "TenantUpdateRequest",
]
