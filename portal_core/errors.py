"""
Portal Error Taxonomy

Every error raised by the core carries an HTTP status code and a stable
machine-readable code. The API gateway renders them as ``{"detail", "code"}``.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Top-level error classification."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    AUTH = "auth_error"
    FORBIDDEN = "forbidden"
    EXTERNAL_SERVICE = "external_service_error"
    PARTIAL_SUCCESS = "partial_success"
    CONFIG = "config_error"
    CONFLICT = "conflict"


class PortalError(Exception):
    """Base class for all portal errors."""

    kind: ErrorKind = ErrorKind.VALIDATION
    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(PortalError):
    """User-correctable input problem."""

    kind = ErrorKind.VALIDATION
    status_code = 400
    code = "validation_error"


class NotFoundError(PortalError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    code = "not_found"


class AuthError(PortalError):
    """Missing or invalid admin session or credentials."""

    kind = ErrorKind.AUTH
    status_code = 401
    code = "unauthorized"


class Forbidden(PortalError):
    """Rejected by the protection guard."""

    kind = ErrorKind.FORBIDDEN
    status_code = 403
    code = "forbidden"


class ExternalServiceError(PortalError):
    """Upstream directory or CAPTCHA failure."""

    kind = ErrorKind.EXTERNAL_SERVICE
    status_code = 502
    code = "external_service_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        upstream_status: Optional[int] = None,
    ):
        super().__init__(message, code)
        self.upstream_status = upstream_status


class AccountCreationCode(str, Enum):
    """Classified directory failures when creating an account."""

    NAME_TAKEN = "name_taken"
    PASSWORD_CONTAINS_NAME = "password_contains_name"
    WEAK_PASSWORD = "weak_password"
    UNCLASSIFIED = "unclassified"


class AccountCreationError(ExternalServiceError):
    """Directory refused to create the account."""

    def __init__(
        self,
        classification: AccountCreationCode,
        message: str,
        upstream_status: Optional[int] = None,
    ):
        super().__init__(message, classification.value, upstream_status)
        self.classification = classification


class PartialSuccess(PortalError):
    """Account created but license assignment failed."""

    kind = ErrorKind.PARTIAL_SUCCESS
    status_code = 207
    code = "partial_success"


class ConfigError(PortalError):
    """Malformed tenant or SKU configuration."""

    kind = ErrorKind.CONFIG
    status_code = 500
    code = "config_error"


class WriteConflict(PortalError):
    """Optimistic write lost against a concurrent writer."""

    kind = ErrorKind.CONFLICT
    status_code = 409
    code = "write_conflict"


class InviteNotFound(ValidationError):
    status_code = 404
    code = "invite_not_found"


class InviteExhausted(ValidationError):
    status_code = 409
    code = "invite_exhausted"


class InviteScopeMismatch(ValidationError):
    status_code = 403
    code = "invite_scope_mismatch"


class AlreadyInstalled(ValidationError):
    status_code = 409
    code = "already_installed"
