"""
Provisioning Module

Self-service registration workflow.
"""

from .models import ProvisioningAttempt, ProvisioningResult, ProvisioningState, RegistrationRequest
from .workflow import ProvisioningWorkflow, validate_credentials

__all__ = [
    "ProvisioningAttempt",
    "ProvisioningResult",
    "ProvisioningState",
    "RegistrationRequest",
    "ProvisioningWorkflow",
    "validate_credentials",
]
