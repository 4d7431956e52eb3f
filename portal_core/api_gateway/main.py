"""
Main FastAPI Application

Directory account self-service portal with:
- Public registration workflow
- Admin console API (tenants, invites, accounts, licenses, settings)
- CORS configuration
- Health checks
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from structlog import get_logger

from ..auth.api_router import router as auth_router
from ..config import PortalConfig, get_config
from ..directory.api_router import router as directory_router
from ..directory.graph_client import GraphClient
from ..errors import PortalError
from ..invites.api_router import router as invites_router
from ..licensing.api_router import router as licensing_router
from ..provisioning.api_router import router as registration_router
from ..shared_services.captcha import CaptchaVerifier
from ..shared_services.logger import configure_logging
from ..shared_services.request_context import RequestContextMiddleware
from ..shared_services.settings_router import router as settings_router
from ..storage import KeyValueStore, create_store
from ..tenant_management.api_router import router as tenant_router

logger = get_logger()

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    config: PortalConfig = app.state.config

    # Startup
    configure_logging(config.log_level, json_logs=not config.is_local)
    logger.info(
        "starting_portal",
        environment=config.environment.value,
        store_backend=config.store_backend.value,
        captcha_enabled=config.captcha_enabled,
    )

    yield

    # Shutdown
    logger.info("shutting_down_portal")
    await app.state.store.close()
    logger.info("portal_shutdown_complete")


def create_app(
    config: Optional[PortalConfig] = None,
    store: Optional[KeyValueStore] = None,
    graph_client: Optional[GraphClient] = None,
    captcha_verifier: Optional[CaptchaVerifier] = None,
) -> FastAPI:
    """
    Build the portal application.

    Args:
        config: Portal configuration (uses cached config if not provided)
        store: Key-value store (built from config if not provided)
        graph_client: Directory client (built from config if not provided)
        captcha_verifier: CAPTCHA verifier (built from config if not provided)

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()

    app = FastAPI(
        title="Directory Account Portal",
        description="Self-service provisioning of licensed directory accounts",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if not config.is_production else None,
        redoc_url="/redoc" if not config.is_production else None,
        openapi_url="/openapi.json" if not config.is_production else None,
    )

    app.state.config = config
    app.state.store = store or create_store(config)
    app.state.graph_client = graph_client or GraphClient(config)
    app.state.captcha_verifier = captcha_verifier or CaptchaVerifier(config)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestContextMiddleware)

    @app.get("/health", tags=["Portal"], summary="Health check")
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "environment": config.environment.value,
            "version": VERSION,
        }

    # Exception handlers
    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc):
        """Custom 404 handler."""
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Resource not found", "path": str(request.url.path)},
        )

    # Include routers
    app.include_router(auth_router)
    app.include_router(tenant_router)
    app.include_router(invites_router)
    app.include_router(directory_router)
    app.include_router(licensing_router)
    app.include_router(settings_router)
    app.include_router(registration_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "portal_core.api_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=config.is_local,
        log_level=config.log_level.lower(),
    )
