"""
Provisioning Workflow

Runs one self-service registration from input validation to a licensed
directory account:

    validating -> invite_check -> captcha_check -> protection_check
               -> creating -> assigning_license -> done

Any step can end the attempt in ``failed``. A license assignment failure
after the account exists is reported as a partial success and is neither
retried nor rolled back.
"""

from typing import Optional

from structlog import get_logger

from ..config import PortalConfig, get_config
from ..directory.graph_client import GraphClient
from ..errors import ErrorKind, Forbidden, PartialSuccess, PortalError, ValidationError
from ..invites.ledger import InviteLedger
from ..shared_services.captcha import CaptchaVerifier
from ..shared_services.passwords import (
    check_password_complexity,
    is_valid_username,
    password_contains_username,
)
from ..shared_services.protection import ProtectionGuard
from ..shared_services.site_settings import SiteSettings
from ..tenant_management.models import Tenant
from ..tenant_management.registry import TenantRegistry
from .models import ProvisioningAttempt, ProvisioningResult, ProvisioningState

logger = get_logger()


class _Progress:
    """Mutable cursor of a single attempt."""

    def __init__(self):
        self.state = ProvisioningState.VALIDATING
        self.tenant: Optional[Tenant] = None
        self.sku_id: Optional[str] = None
        self.address: Optional[str] = None
        self.account_id: Optional[str] = None


def validate_credentials(username: str, password: str) -> None:
    """
    Check username format and password policy.

    Raises:
        ValidationError: If any rule fails
    """
    if not is_valid_username(username):
        raise ValidationError("Username may only contain letters and digits", code="invalid_username")
    if password_contains_username(password, username):
        raise ValidationError("Password must not contain the username", code="password_contains_username")
    if not check_password_complexity(password):
        raise ValidationError(
            "Password needs at least 8 characters and three of: lowercase, uppercase, digits, symbols",
            code="weak_password",
        )


class ProvisioningWorkflow:
    """Orchestrates one registration against a settings snapshot."""

    def __init__(
        self,
        registry: TenantRegistry,
        ledger: InviteLedger,
        captcha: CaptchaVerifier,
        client: GraphClient,
        settings: SiteSettings,
        config: Optional[PortalConfig] = None,
    ):
        """
        Initialize workflow.

        Args:
            registry: Tenant registry for routing
            ledger: Invite ledger, used when invites are required
            captcha: CAPTCHA verifier, used when a secret is configured
            client: Directory client
            settings: Settings snapshot taken at the start of the request
            config: Portal configuration (uses cached config if not provided)
        """
        self.registry = registry
        self.ledger = ledger
        self.captcha = captcha
        self.client = client
        self.settings = settings
        self.config = config or get_config()
        self.guard = ProtectionGuard.from_settings(settings, self.config)

    def _enter(self, progress: _Progress, state: ProvisioningState, attempt: ProvisioningAttempt) -> None:
        progress.state = state
        logger.info(
            "provisioning_state",
            state=state.value,
            username=attempt.username,
            tenant_id=attempt.tenant_id,
            sku_name=attempt.sku_name,
        )

    async def run(self, attempt: ProvisioningAttempt) -> ProvisioningResult:
        """
        Execute the workflow.

        Errors raised by a step end the attempt and are returned as a
        failed result; nothing is swallowed.

        Args:
            attempt: Registration input

        Returns:
            Terminal result (``done`` or ``failed``)
        """
        progress = _Progress()

        try:
            await self._provision(progress, attempt)
        except PartialSuccess as e:
            logger.warning(
                "provisioning_partial_success",
                tenant_id=attempt.tenant_id,
                account_id=progress.account_id,
                error=e.message,
            )
            return ProvisioningResult(
                success=False,
                state=ProvisioningState.FAILED,
                error_kind=ErrorKind.PARTIAL_SUCCESS,
                code=e.code,
                message="Account created but license assignment failed",
                address=progress.address,
                account_id=progress.account_id,
                license_error=e.message,
                failed_at=progress.state,
                status_code=e.status_code,
            )
        except PortalError as e:
            logger.info(
                "provisioning_failed",
                failed_at=progress.state.value,
                tenant_id=attempt.tenant_id,
                error_kind=e.kind.value,
                code=e.code,
            )
            return ProvisioningResult(
                success=False,
                state=ProvisioningState.FAILED,
                error_kind=e.kind,
                code=e.code,
                message=e.message,
                failed_at=progress.state,
                status_code=e.status_code,
            )

        self._enter(progress, ProvisioningState.DONE, attempt)
        return ProvisioningResult(
            success=True,
            state=ProvisioningState.DONE,
            address=progress.address,
            account_id=progress.account_id,
        )

    async def _provision(self, progress: _Progress, attempt: ProvisioningAttempt) -> None:
        self._enter(progress, ProvisioningState.VALIDATING, attempt)
        validate_credentials(attempt.username, attempt.password)

        if self.settings.invite_required:
            self._enter(progress, ProvisioningState.INVITE_CHECK, attempt)
            if not attempt.invite_code or not attempt.invite_code.strip():
                raise ValidationError("An invite code is required", code="invite_required")
            await self.ledger.redeem(attempt.invite_code, attempt.tenant_id, attempt.sku_name)

        if self.captcha.enabled:
            self._enter(progress, ProvisioningState.CAPTCHA_CHECK, attempt)
            await self.captcha.verify(attempt.captcha_token, attempt.remote_ip)

        self._enter(progress, ProvisioningState.PROTECTION_CHECK, attempt)
        tenant = await self.registry.get_tenant(attempt.tenant_id)
        if tenant is None:
            raise ValidationError("Unknown tenant", code="unknown_tenant")
        progress.tenant = tenant
        progress.sku_id = self.registry.resolve_sku(tenant, attempt.sku_name)
        progress.address = tenant.address_for(attempt.username)
        if self.guard.is_protected(progress.address):
            raise Forbidden("This username is reserved", code="reserved_username")

        self._enter(progress, ProvisioningState.CREATING, attempt)
        progress.account_id = await self.client.create_account(
            tenant,
            attempt.username,
            attempt.password,
            usage_location=self.settings.usage_location,
        )

        self._enter(progress, ProvisioningState.ASSIGNING_LICENSE, attempt)
        try:
            await self.client.assign_license(tenant, progress.account_id, progress.sku_id)
        except PortalError as e:
            raise PartialSuccess(e.message) from e
