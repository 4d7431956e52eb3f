"""
Provisioning Models

Registration request, the in-flight attempt and the terminal result.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ErrorKind
from ..tenant_management.schema import TenantOption


class ProvisioningState(str, Enum):
    """Workflow states, in execution order."""

    VALIDATING = "validating"
    INVITE_CHECK = "invite_check"
    CAPTCHA_CHECK = "captcha_check"
    PROTECTION_CHECK = "protection_check"
    CREATING = "creating"
    ASSIGNING_LICENSE = "assigning_license"
    DONE = "done"
    FAILED = "failed"


class RegistrationRequest(BaseModel):
    """Self-service registration form."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=256)
    tenant_id: str = Field(..., min_length=1)
    sku_name: str = Field(..., min_length=1)
    invite_code: Optional[str] = Field(default=None)
    captcha_token: Optional[str] = Field(default=None, alias="cf-turnstile-response")


class ProvisioningAttempt(BaseModel):
    """One registration moving through the workflow. Never persisted."""

    username: str
    password: str = Field(..., repr=False)
    tenant_id: str
    sku_name: str
    invite_code: Optional[str] = None
    captcha_token: Optional[str] = Field(default=None, repr=False)
    remote_ip: Optional[str] = None

    @classmethod
    def from_request(cls, request: RegistrationRequest, remote_ip: Optional[str] = None) -> "ProvisioningAttempt":
        return cls(
            username=request.username.strip(),
            password=request.password,
            tenant_id=request.tenant_id,
            sku_name=request.sku_name,
            invite_code=request.invite_code,
            captcha_token=request.captcha_token,
            remote_ip=remote_ip,
        )


class ProvisioningResult(BaseModel):
    """
    Terminal outcome of a registration.

    A partial success ends in ``FAILED`` with ``error_kind`` set to
    ``partial_success``; ``address`` and ``account_id`` are then present
    because the account exists without a license.
    """

    success: bool
    state: ProvisioningState
    error_kind: Optional[ErrorKind] = None
    code: Optional[str] = None
    message: Optional[str] = None

    address: Optional[str] = None
    account_id: Optional[str] = None
    license_error: Optional[str] = None

    failed_at: Optional[ProvisioningState] = Field(default=None, description="State the attempt failed in")
    completed_at: datetime = Field(default_factory=datetime.utcnow)

    status_code: int = Field(default=201, exclude=True)


class RegistrationOptions(BaseModel):
    """Public options for building the registration form."""

    tenants: list[TenantOption]
    invite_required: bool
    captcha_site_key: Optional[str] = None
