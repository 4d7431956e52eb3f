"""
Shared Services Module

Common services used across the portal: protection guard, site settings,
CAPTCHA verification and logging setup.
"""

from .captcha import CaptchaVerifier
from .logger import configure_logging
from .protection import ProtectionGuard, local_part
from .site_settings import SiteSettings, SiteSettingsService, SiteSettingsUpdate

__all__ = [
    "CaptchaVerifier",
    "configure_logging",
    "ProtectionGuard",
    "local_part",
    "SiteSettings",
    "SiteSettingsService",
    "SiteSettingsUpdate",
]
