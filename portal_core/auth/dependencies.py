"""
Authentication Dependencies

FastAPI dependencies for resolving and enforcing the admin session.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from structlog import get_logger

from ..config import PortalConfig
from ..dependencies import get_portal_config, get_store, get_tenant_registry
from ..storage import KeyValueStore
from ..tenant_management.registry import TenantRegistry
from .install import InstallService
from .sessions import Session, SessionStore

logger = get_logger()

# HTTP Bearer token authentication
security = HTTPBearer(auto_error=False)


def get_session_store(
    store: KeyValueStore = Depends(get_store),
    config: PortalConfig = Depends(get_portal_config),
) -> SessionStore:
    return SessionStore(store, config)


def get_install_service(
    store: KeyValueStore = Depends(get_store),
    registry: TenantRegistry = Depends(get_tenant_registry),
    config: PortalConfig = Depends(get_portal_config),
) -> InstallService:
    return InstallService(store, registry, config)


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    sessions: SessionStore = Depends(get_session_store),
) -> Session:
    """
    Get the current admin session from the bearer token.

    Raises:
        HTTPException: If the token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials:
        raise credentials_exception

    session = await sessions.validate(credentials.credentials)
    if not session:
        logger.warning("invalid_admin_session")
        raise credentials_exception

    return session
