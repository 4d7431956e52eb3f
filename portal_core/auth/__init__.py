"""
Authentication Module

Installation lock, admin password and session handling.
"""

from .dependencies import require_admin
from .install import InstallService
from .security import create_session_token, get_password_hash, verify_password
from .sessions import Session, SessionStore

__all__ = [
    "require_admin",
    "InstallService",
    "create_session_token",
    "get_password_hash",
    "verify_password",
    "Session",
    "SessionStore",
]
