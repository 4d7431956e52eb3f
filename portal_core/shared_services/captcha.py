"""
CAPTCHA Verification

Client for the Cloudflare Turnstile siteverify endpoint.
"""

from typing import Optional

import httpx
from structlog import get_logger

from ..config import PortalConfig, get_config
from ..errors import ExternalServiceError, ValidationError

logger = get_logger()


class CaptchaVerifier:
    """Verifies CAPTCHA response tokens against the external service."""

    def __init__(
        self,
        config: Optional[PortalConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize verifier.

        Args:
            config: Portal configuration (uses cached config if not provided)
            transport: Optional httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return self.config.captcha_enabled

    async def verify(self, response_token: Optional[str], remote_ip: Optional[str] = None) -> None:
        """
        Verify a CAPTCHA response token.

        Args:
            response_token: Token produced by the client-side widget
            remote_ip: Registrant's IP address, if known

        Raises:
            ValidationError: If the token is missing or rejected
            ExternalServiceError: If the verifier cannot be reached
        """
        if not response_token:
            raise ValidationError("CAPTCHA verification failed", code="captcha_failed")

        payload = {
            "secret": self.config.turnstile_secret_key,
            "response": response_token,
        }
        if remote_ip:
            payload["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(
                timeout=self.config.http_timeout_seconds, transport=self.transport
            ) as client:
                response = await client.post(self.config.turnstile_verify_url, json=payload)
                response.raise_for_status()
                result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("captcha_verification_error", error=str(e))
            raise ExternalServiceError("CAPTCHA service unavailable", code="captcha_unavailable") from e

        if not isinstance(result, dict):
            result = {}
        if result.get("success") is not True:
            logger.info("captcha_rejected", error_codes=result.get("error-codes", []))
            raise ValidationError("CAPTCHA verification failed", code="captcha_failed")
