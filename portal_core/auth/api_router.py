"""
Authentication API Router

Installation, admin login and logout.
"""

from fastapi import APIRouter, Depends, status
from structlog import get_logger

from .dependencies import get_install_service, get_session_store, require_admin
from .install import InstallService
from .models import InstallRequest, InstallResponse, LoginRequest, LoginResponse
from .sessions import Session, SessionStore

logger = get_logger()

router = APIRouter(prefix="/admin", tags=["Authentication"])


@router.get("/install", summary="Installation status")
async def install_status(
    install_service: InstallService = Depends(get_install_service),
) -> dict:
    """Report whether the portal has been installed."""
    return {"installed": await install_service.is_installed()}


@router.post(
    "/install",
    response_model=InstallResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Install portal",
    description="Set the admin password. Only allowed once.",
)
async def install(
    request: InstallRequest,
    install_service: InstallService = Depends(get_install_service),
) -> InstallResponse:
    """Perform the one-time installation."""
    seeded = await install_service.install(request.password)
    return InstallResponse(installed=True, bootstrap_tenant_seeded=seeded)


@router.post("/api/login", response_model=LoginResponse, summary="Admin login")
async def login(
    request: LoginRequest,
    install_service: InstallService = Depends(get_install_service),
    sessions: SessionStore = Depends(get_session_store),
) -> LoginResponse:
    """Exchange the admin password for a session token."""
    await install_service.authenticate(request.password)
    token = await sessions.create_session()
    logger.info("admin_logged_in")
    return LoginResponse(access_token=token, expires_in=sessions.ttl_seconds)


@router.post("/api/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Admin logout")
async def logout(
    session: Session = Depends(require_admin),
    sessions: SessionStore = Depends(get_session_store),
) -> None:
    """Revoke the current session."""
    await sessions.revoke(session)
