"""
Installation Lock

The portal is installed once: the first install call stores the admin
password hash together with the install flag in a single conditional write.
Later calls are refused.
"""

from datetime import datetime
from typing import Optional

from structlog import get_logger

from ..config import PortalConfig, get_config
from ..errors import AlreadyInstalled, AuthError, ValidationError
from ..shared_services.passwords import check_password_complexity
from ..storage import KeyValueStore, update_with_retry
from ..tenant_management.registry import TenantRegistry
from .security import get_password_hash, verify_password

logger = get_logger()

INSTALL_KEY = "install"


class InstallService:
    """Install flag and admin credential."""

    def __init__(
        self,
        store: KeyValueStore,
        registry: TenantRegistry,
        config: Optional[PortalConfig] = None,
    ):
        self.store = store
        self.registry = registry
        self.config = config or get_config()

    async def is_installed(self) -> bool:
        return bool(await self.store.get(INSTALL_KEY))

    async def install(self, admin_password: str) -> bool:
        """
        Perform the one-time installation.

        Args:
            admin_password: Password for the admin console

        Returns:
            True if a bootstrap tenant was seeded from the environment

        Raises:
            ValidationError: If the password is too weak
            AlreadyInstalled: If the portal was installed before
        """
        if not check_password_complexity(admin_password):
            raise ValidationError("Admin password must be at least 8 characters and use 3 character types")

        record = {
            "installed_at": datetime.utcnow().isoformat(),
            "password_hash": get_password_hash(admin_password),
        }

        def mutate(current):
            if current:
                raise AlreadyInstalled("Portal is already installed")
            return record

        await update_with_retry(
            self.store,
            INSTALL_KEY,
            mutate,
            attempts=self.config.store_conflict_retries,
        )
        logger.info("portal_installed")

        tenant = await self.registry.seed_bootstrap_tenant()
        if tenant is None:
            return False
        logger.info("bootstrap_tenant_seeded", tenant_id=tenant.id)
        return True

    async def authenticate(self, password: str) -> None:
        """
        Check the admin password.

        Raises:
            AuthError: If the portal is not installed or the password is wrong
        """
        record = await self.store.get(INSTALL_KEY)
        if not record:
            raise AuthError("Portal is not installed", code="not_installed")

        if not verify_password(password, record.get("password_hash", "")):
            logger.warning("admin_login_failed")
            raise AuthError("Invalid credentials")
