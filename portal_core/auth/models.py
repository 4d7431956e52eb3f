"""
Authentication Request/Response Models
"""

from pydantic import BaseModel, Field


class InstallRequest(BaseModel):
    """One-time installation request."""

    password: str = Field(..., min_length=8, max_length=256, description="Admin console password")


class InstallResponse(BaseModel):
    installed: bool
    bootstrap_tenant_seeded: bool = False


class LoginRequest(BaseModel):
    """Admin login request."""

    password: str = Field(..., min_length=1, max_length=256)


class LoginResponse(BaseModel):
    """Admin login response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Session lifetime in seconds")
