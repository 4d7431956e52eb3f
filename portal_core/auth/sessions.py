"""
Admin Sessions

Sessions are stored entries with a time-to-live. The admin holds a signed
token naming the entry; a session is valid only while both the signature
and the stored entry are valid, so deleting the entry revokes it.
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field
from structlog import get_logger

from ..config import PortalConfig, get_config
from ..storage import KeyValueStore
from .security import create_session_token, decode_session_token

logger = get_logger()


def _session_key(session_id: str) -> str:
    return f"session:{session_id}"


class Session(BaseModel):
    """Stored admin session."""

    sid: str
    issued_at: datetime = Field(default_factory=datetime.utcnow)


class SessionStore:
    """Issues, validates and revokes admin sessions."""

    def __init__(self, store: KeyValueStore, config: Optional[PortalConfig] = None):
        self.store = store
        self.config = config or get_config()

    @property
    def ttl_seconds(self) -> int:
        return self.config.session_ttl_seconds

    async def create_session(self) -> str:
        """
        Start a new session.

        Returns:
            Signed session token
        """
        session = Session(sid=secrets.token_urlsafe(32))
        await self.store.put(
            _session_key(session.sid),
            session.model_dump(mode="json"),
            ttl=self.ttl_seconds,
        )
        logger.info("admin_session_created")
        return create_session_token(session.sid, timedelta(seconds=self.ttl_seconds), self.config)

    async def validate(self, token: str) -> Optional[Session]:
        """
        Resolve a token to its live session.

        Returns:
            Session if the token verifies and the entry has not expired
        """
        payload = decode_session_token(token, self.config)
        if not payload:
            return None

        raw = await self.store.get(_session_key(payload["sid"]))
        if not raw:
            logger.info("admin_session_expired")
            return None
        return Session(**raw)

    async def revoke(self, session: Session) -> None:
        await self.store.delete(_session_key(session.sid))
        logger.info("admin_session_revoked")
