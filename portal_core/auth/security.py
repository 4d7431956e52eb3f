"""
Security Utilities

Admin password hashing with Argon2id and signed session tokens.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from structlog import get_logger

from ..config import PortalConfig, get_config

logger = get_logger()

SESSION_TOKEN_TYPE = "admin_session"

# Admin password hashing (Argon2id)
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__memory_cost=65536,  # 64 MB
    argon2__time_cost=3,
    argon2__parallelism=4,
)


def get_password_hash(password: str) -> str:
    """
    Hash a password using Argon2id.

    Args:
        password: Plain text password

    Returns:
        Hashed password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Password entered at login
        hashed_password: Hash stored by the install step

    Returns:
        True if password matches, False otherwise
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error("password_verification_error", error=str(e))
        return False


def create_session_token(
    session_id: str,
    expires_delta: timedelta,
    config: Optional[PortalConfig] = None,
) -> str:
    """
    Create a signed token referencing a stored session.

    Args:
        session_id: Identifier of the stored session entry
        expires_delta: Token lifetime (matches the stored entry's TTL)
        config: Portal configuration (uses cached config if not provided)

    Returns:
        Encoded JWT
    """
    config = config or get_config()
    to_encode = {
        "sid": session_id,
        "type": SESSION_TOKEN_TYPE,
        "exp": datetime.utcnow() + expires_delta,
    }
    return jwt.encode(to_encode, config.jwt_secret_key, algorithm=config.jwt_algorithm)


def decode_session_token(token: str, config: Optional[PortalConfig] = None) -> Optional[dict[str, Any]]:
    """
    Decode and validate a session token.

    Args:
        token: JWT to decode

    Returns:
        Token payload if valid and of the session type, None otherwise
    """
    config = config or get_config()
    try:
        payload = jwt.decode(token, config.jwt_secret_key, algorithms=[config.jwt_algorithm])
    except JWTError as e:
        logger.warning("jwt_decode_error", error=str(e))
        return None

    if payload.get("type") != SESSION_TOKEN_TYPE or not payload.get("sid"):
        return None
    return payload
