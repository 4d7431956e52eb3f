"""
Directory Client

Wraps OAuth token acquisition and the directory REST operations used by
the portal. Everything that knows about the Graph request and response
shapes lives here.

Calls are never retried, with one exception: when a cached token is
rejected with 401 the cache entry is dropped and the call is repeated once
with a fresh token, so revoked or rotated credentials surface immediately.
"""

import time
from typing import Any, Optional

import httpx
from structlog import get_logger

from ..config import PortalConfig, get_config
from ..errors import (
    AccountCreationCode,
    AccountCreationError,
    ExternalServiceError,
    Forbidden,
    PortalError,
)
from ..shared_services.protection import ProtectionGuard
from ..tenant_management.models import Tenant
from .models import DirectoryAccount, LicenseSku, SubscriptionRecord

logger = get_logger()

# Upstream phrase -> classification, checked in order, case-insensitive
CREATE_ERROR_PHRASES: tuple[tuple[str, AccountCreationCode], ...] = (
    ("another object", AccountCreationCode.NAME_TAKEN),
    ("Password cannot contain username", AccountCreationCode.PASSWORD_CONTAINS_NAME),
    ("PasswordProfile", AccountCreationCode.WEAK_PASSWORD),
    ("weak", AccountCreationCode.WEAK_PASSWORD),
)

CREATE_ERROR_MESSAGES = {
    AccountCreationCode.NAME_TAKEN: "Username is already taken",
    AccountCreationCode.PASSWORD_CONTAINS_NAME: "Password cannot contain the username",
    AccountCreationCode.WEAK_PASSWORD: "Password is too weak or violates the directory policy",
}

USER_LIST_FIELDS = "id,displayName,userPrincipalName,createdDateTime,assignedLicenses"

# Seconds before expiry at which a cached token is no longer reused
TOKEN_EXPIRY_MARGIN = 60


def classify_create_error(message: str) -> AccountCreationCode:
    """Map an upstream error message to a creation failure code."""
    lowered = message.lower()
    for phrase, code in CREATE_ERROR_PHRASES:
        if phrase.lower() in lowered:
            return code
    return AccountCreationCode.UNCLASSIFIED


def error_message(response: httpx.Response) -> str:
    """Extract the directory's error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if body.get("error_description"):
            return body["error_description"]
    return f"HTTP {response.status_code}"


def response_body(response: httpx.Response) -> dict[str, Any]:
    """
    Decode the JSON object of a successful directory response.

    Raises:
        ExternalServiceError: If the body is not a JSON object
    """
    try:
        body = response.json()
    except ValueError as e:
        raise ExternalServiceError(
            "Directory returned a malformed response",
            code="malformed_response",
            upstream_status=response.status_code,
        ) from e
    if not isinstance(body, dict):
        raise ExternalServiceError(
            "Directory returned a malformed response",
            code="malformed_response",
            upstream_status=response.status_code,
        )
    return body


class GraphClient:
    """Client for the identity-and-license directory."""

    def __init__(
        self,
        config: Optional[PortalConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize directory client.

        Args:
            config: Portal configuration (uses cached config if not provided)
            transport: Optional httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.transport = transport
        self._token_cache: dict[tuple[str, str, str], tuple[str, float]] = {}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.http_timeout_seconds,
            transport=self.transport,
        )

    @staticmethod
    def _cache_key(tenant: Tenant) -> tuple[str, str, str]:
        # rotating any credential yields a new key
        return (tenant.directory_id, tenant.client_id, tenant.client_secret)

    async def get_access_token(self, tenant: Tenant, force_refresh: bool = False) -> str:
        """
        Acquire a bearer token with the client-credentials grant.

        Args:
            tenant: Tenant whose credentials to use
            force_refresh: Skip the token cache

        Returns:
            Access token

        Raises:
            ExternalServiceError: If the token endpoint rejects the credentials
        """
        key = self._cache_key(tenant)
        if self.config.graph_token_cache_enabled and not force_refresh:
            cached = self._token_cache.get(key)
            if cached and cached[1] > time.monotonic():
                return cached[0]

        url = f"{self.config.login_base_url}/{tenant.directory_id}/oauth2/v2.0/token"
        form = {
            "client_id": tenant.client_id,
            "client_secret": tenant.client_secret,
            "scope": self.config.graph_scope,
            "grant_type": "client_credentials",
        }

        try:
            async with self._client() as client:
                response = await client.post(url, data=form)
        except httpx.HTTPError as e:
            logger.error("token_request_error", tenant_id=tenant.id, error=str(e))
            raise ExternalServiceError("Directory authentication unavailable", code="token_error") from e

        if response.status_code != 200:
            message = error_message(response)
            logger.warning(
                "token_request_rejected",
                tenant_id=tenant.id,
                status=response.status_code,
                error=message,
            )
            self._token_cache.pop(key, None)
            raise ExternalServiceError(
                f"Directory authentication failed: {message}",
                code="token_error",
                upstream_status=response.status_code,
            )

        data = response_body(response)
        token = data.get("access_token")
        if not token or not isinstance(token, str):
            raise ExternalServiceError("Directory returned no access token", code="token_error")

        if self.config.graph_token_cache_enabled:
            try:
                expires_in = int(data.get("expires_in") or 0)
            except (TypeError, ValueError):
                expires_in = 0
            self._evict_rotated(key)
            self._token_cache[key] = (token, time.monotonic() + expires_in - TOKEN_EXPIRY_MARGIN)

        return token

    def invalidate_token(self, tenant: Tenant) -> None:
        self._token_cache.pop(self._cache_key(tenant), None)

    def _evict_rotated(self, key: tuple[str, str, str]) -> None:
        # drop tokens issued under a previous secret of the same app registration
        for stale in [k for k in self._token_cache if k[:2] == key[:2] and k != key]:
            del self._token_cache[stale]

    async def _request(
        self,
        tenant: Tenant,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Perform an authenticated directory request.

        Args:
            tenant: Tenant to act on
            method: HTTP method
            path: Path below the Graph base URL, or an absolute URL
            json: Optional JSON body
            params: Optional query parameters
            headers: Extra request headers

        Returns:
            The raw response; callers check its status

        Raises:
            ExternalServiceError: On transport failure or token failure
        """
        url = path if path.startswith("http") else f"{self.config.graph_base_url}{path}"
        cached = self.config.graph_token_cache_enabled and self._cache_key(tenant) in self._token_cache
        token = await self.get_access_token(tenant)

        try:
            async with self._client() as client:
                response = await client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers={"Authorization": f"Bearer {token}", **(headers or {})},
                )

                if response.status_code == 401 and cached:
                    logger.info("cached_token_rejected", tenant_id=tenant.id)
                    self.invalidate_token(tenant)
                    token = await self.get_access_token(tenant, force_refresh=True)
                    response = await client.request(
                        method,
                        url,
                        json=json,
                        params=params,
                        headers={"Authorization": f"Bearer {token}", **(headers or {})},
                    )
        except httpx.HTTPError as e:
            logger.error("directory_request_error", tenant_id=tenant.id, method=method, error=str(e))
            raise ExternalServiceError("Directory service unavailable") from e

        return response

    async def create_account(
        self,
        tenant: Tenant,
        username: str,
        password: str,
        usage_location: Optional[str] = None,
    ) -> str:
        """
        Create an enabled account in the tenant's default domain.

        Args:
            tenant: Target tenant
            username: Account name (local-part)
            password: Initial password
            usage_location: Two-letter usage location

        Returns:
            The created account's directory id

        Raises:
            AccountCreationError: If the directory refuses the account
        """
        principal_name = tenant.address_for(username)
        payload = {
            "accountEnabled": True,
            "displayName": username,
            "mailNickname": username,
            "userPrincipalName": principal_name,
            "passwordProfile": {
                "forceChangePasswordNextSignIn": False,
                "password": password,
            },
            "usageLocation": usage_location or self.config.default_usage_location,
        }

        response = await self._request(tenant, "POST", "/users", json=payload)

        if response.status_code not in (200, 201):
            message = error_message(response)
            classification = classify_create_error(message)
            logger.warning(
                "create_account_rejected",
                tenant_id=tenant.id,
                principal_name=principal_name,
                classification=classification.value,
                error=message,
            )
            raise AccountCreationError(
                classification,
                CREATE_ERROR_MESSAGES.get(classification, message),
                upstream_status=response.status_code,
            )

        account_id = response_body(response).get("id")
        if not account_id:
            logger.error("create_account_malformed_response", tenant_id=tenant.id, principal_name=principal_name)
            raise ExternalServiceError(
                "Directory did not return the created account id",
                code="malformed_response",
                upstream_status=response.status_code,
            )
        logger.info("account_created", tenant_id=tenant.id, account_id=account_id)
        return account_id

    async def update_licenses(
        self,
        tenant: Tenant,
        account_id: str,
        add_sku_ids: Optional[list[str]] = None,
        remove_sku_ids: Optional[list[str]] = None,
    ) -> None:
        """
        Add and/or remove licenses on an account.

        Raises:
            ExternalServiceError: If the directory rejects the change
        """
        payload = {
            "addLicenses": [{"disabledPlans": [], "skuId": sku_id} for sku_id in add_sku_ids or []],
            "removeLicenses": list(remove_sku_ids or []),
        }
        response = await self._request(
            tenant, "POST", f"/users/{account_id}/assignLicense", json=payload
        )

        if response.status_code not in (200, 201):
            message = error_message(response)
            logger.warning(
                "license_update_rejected",
                tenant_id=tenant.id,
                account_id=account_id,
                error=message,
            )
            raise ExternalServiceError(
                message, code="license_assignment_failed", upstream_status=response.status_code
            )

        logger.info(
            "licenses_updated",
            tenant_id=tenant.id,
            account_id=account_id,
            added=add_sku_ids or [],
            removed=remove_sku_ids or [],
        )

    async def assign_license(self, tenant: Tenant, account_id: str, sku_id: str) -> None:
        """Assign one SKU to an account."""
        await self.update_licenses(tenant, account_id, add_sku_ids=[sku_id])

    async def remove_license(self, tenant: Tenant, account_id: str, sku_id: str) -> None:
        """Remove one SKU from an account."""
        await self.update_licenses(tenant, account_id, remove_sku_ids=[sku_id])

    async def get_principal_name(self, tenant: Tenant, account_id: str) -> str:
        """
        Fetch an account's principal name.

        Raises:
            ExternalServiceError: If the account cannot be read
        """
        response = await self._request(
            tenant,
            "GET",
            f"/users/{account_id}",
            params={"$select": "userPrincipalName"},
        )
        if response.status_code != 200:
            raise ExternalServiceError(
                error_message(response), code="account_lookup_failed", upstream_status=response.status_code
            )
        principal_name = response_body(response).get("userPrincipalName")
        if not principal_name:
            raise ExternalServiceError("Account has no principal name", code="account_lookup_failed")
        return principal_name

    async def ensure_mutable(self, tenant: Tenant, account_id: str, guard: ProtectionGuard) -> str:
        """
        Re-read an account and refuse if it is protected.

        A failed lookup counts as protected.

        Returns:
            The account's principal name

        Raises:
            Forbidden: If the account is protected or cannot be verified
        """
        try:
            principal_name = await self.get_principal_name(tenant, account_id)
        except PortalError as e:
            logger.warning(
                "protection_lookup_failed",
                tenant_id=tenant.id,
                account_id=account_id,
                error=e.message,
            )
            raise Forbidden("Unable to verify the account; refusing to modify it") from e

        if guard.is_protected(principal_name):
            logger.warning("protected_account_mutation_blocked", tenant_id=tenant.id, account_id=account_id)
            raise Forbidden("This account is protected")

        return principal_name

    async def delete_account(self, tenant: Tenant, account_id: str, guard: ProtectionGuard) -> str:
        """
        Delete an account unless it is protected.

        Returns:
            The deleted account's principal name

        Raises:
            Forbidden: If the account is protected or cannot be verified
            ExternalServiceError: If the directory rejects the deletion
        """
        principal_name = await self.ensure_mutable(tenant, account_id, guard)

        response = await self._request(tenant, "DELETE", f"/users/{account_id}")
        if response.status_code not in (200, 204):
            raise ExternalServiceError(
                error_message(response), code="delete_failed", upstream_status=response.status_code
            )

        logger.info("account_deleted", tenant_id=tenant.id, account_id=account_id)
        return principal_name

    async def reset_password(
        self,
        tenant: Tenant,
        account_id: str,
        new_password: str,
        guard: ProtectionGuard,
    ) -> str:
        """
        Set a new password unless the account is protected.

        Returns:
            The account's principal name

        Raises:
            Forbidden: If the account is protected or cannot be verified
            ExternalServiceError: If the directory rejects the change
        """
        principal_name = await self.ensure_mutable(tenant, account_id, guard)

        payload = {
            "passwordProfile": {
                "forceChangePasswordNextSignIn": False,
                "password": new_password,
            }
        }
        response = await self._request(tenant, "PATCH", f"/users/{account_id}", json=payload)
        if response.status_code not in (200, 204):
            raise ExternalServiceError(
                error_message(response), code="password_reset_failed", upstream_status=response.status_code
            )

        logger.info("account_password_reset", tenant_id=tenant.id, account_id=account_id)
        return principal_name

    async def _get_collection(
        self,
        tenant: Tenant,
        path: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        max_pages: int = 50,
    ) -> list[dict[str, Any]]:
        """Follow ``@odata.nextLink`` and return every item."""
        items: list[dict[str, Any]] = []
        next_url: Optional[str] = path

        for _ in range(max_pages):
            if not next_url:
                break
            response = await self._request(
                tenant,
                "GET",
                next_url,
                params=params if next_url == path else None,
                headers=headers,
            )
            if response.status_code != 200:
                raise ExternalServiceError(
                    error_message(response), code="list_failed", upstream_status=response.status_code
                )
            body = response_body(response)
            items.extend(body.get("value") or [])
            next_url = body.get("@odata.nextLink")

        return items

    async def list_accounts(self, tenant: Tenant) -> list[DirectoryAccount]:
        """List accounts in a tenant, each tagged with the tenant id."""
        items = await self._get_collection(
            tenant,
            "/users",
            params={"$select": USER_LIST_FIELDS, "$top": 100, "$count": "true"},
            headers={"ConsistencyLevel": "eventual"},
        )
        return [DirectoryAccount.from_graph(item, tenant_id=tenant.id) for item in items]

    async def list_license_skus(self, tenant: Tenant) -> list[LicenseSku]:
        """List subscribed SKUs with seat counts."""
        items = await self._get_collection(tenant, "/subscribedSkus")
        return [LicenseSku.from_graph(item) for item in items if item.get("skuId")]

    async def list_subscription_expirations(self, tenant: Tenant) -> list[SubscriptionRecord]:
        """List subscription lifecycle records."""
        items = await self._get_collection(tenant, "/directory/subscriptions")
        return [SubscriptionRecord.from_graph(item) for item in items if item.get("skuId")]
