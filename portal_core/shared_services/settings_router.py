"""
Site Settings API Router
"""

from fastapi import APIRouter, Depends

from ..auth.dependencies import require_admin
from ..dependencies import get_settings_service
from .site_settings import SiteSettings, SiteSettingsService, SiteSettingsUpdate

router = APIRouter(prefix="/admin/api/settings", tags=["Settings"], dependencies=[Depends(require_admin)])


@router.get("", response_model=SiteSettings, summary="Get site settings")
async def get_settings(
    service: SiteSettingsService = Depends(get_settings_service),
) -> SiteSettings:
    return await service.get_settings()


@router.post("", response_model=SiteSettings, summary="Update site settings")
async def update_settings(
    request: SiteSettingsUpdate,
    service: SiteSettingsService = Depends(get_settings_service),
) -> SiteSettings:
    """Change invite mode, reserved names or usage location."""
    return await service.update_settings(request)
