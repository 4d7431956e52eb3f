import json
import os
from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from portal_core.api_gateway.main import create_app
from portal_core.config import Environment, PortalConfig, StoreBackend
from portal_core.directory.graph_client import GraphClient
from portal_core.invites.ledger import InviteLedger
from portal_core.provisioning.workflow import ProvisioningWorkflow
from portal_core.shared_services.captcha import CaptchaVerifier
from portal_core.shared_services.site_settings import SiteSettings
from portal_core.storage import MemoryKeyValueStore
from portal_core.tenant_management.models import Tenant
from portal_core.tenant_management.registry import TenantRegistry

ADMIN_PASSWORD = "Adm1n-Passw0rd"
GOOD_CAPTCHA = "good-token"

T1 = {
    "id": "t1",
    "label": "Tenant One",
    "client_id": "client-1",
    "client_secret": "secret-1",
    "directory_id": "dir-1",
    "default_domain": "t1.example.com",
    "sku_map": {"E5": "sku-123", "A1": "sku-456"},
}

T2 = {
    "id": "t2",
    "label": "Tenant Two",
    "client_id": "client-2",
    "client_secret": "secret-2",
    "directory_id": "dir-2",
    "default_domain": "t2.example.com",
    "sku_map": {"E3": "sku-789"},
}


class FakeDirectory:
    """In-process stand-in for the token endpoint and the Graph REST API."""

    def __init__(self):
        self.accounts: dict[str, dict] = {}
        self.passwords: dict[str, str] = {}
        self.skus: dict[str, list[dict]] = {}
        self.subscriptions: dict[str, list[dict]] = {}

        self.issued_tokens: list[str] = []
        self.revoked_tokens: set[str] = set()
        self.unavailable_directories: set[str] = set()

        self.create_error: Optional[str] = None
        self.license_error: Optional[str] = None
        self.lookup_fails = False
        self.page_size: Optional[int] = None

    @property
    def token_requests(self) -> int:
        return len(self.issued_tokens)

    def add_account(self, principal_name: str, directory_id: str = "dir-1") -> str:
        account_id = f"u{len(self.accounts) + 1}"
        self.accounts[account_id] = {
            "id": account_id,
            "directory_id": directory_id,
            "displayName": principal_name.split("@")[0],
            "userPrincipalName": principal_name,
            "createdDateTime": f"2024-01-{len(self.accounts) + 1:02d}T00:00:00Z",
            "assignedLicenses": [],
        }
        return account_id

    def account_by_name(self, principal_name: str) -> Optional[dict]:
        for account in self.accounts.values():
            if account["userPrincipalName"] == principal_name:
                return account
        return None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "login.microsoftonline.com":
            return self._issue_token(request)

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.issued_tokens or token in self.revoked_tokens:
            return _error(401, "InvalidAuthenticationToken")

        directory_id = token.split(":")[0]
        if directory_id in self.unavailable_directories:
            return _error(503, "Service unavailable")

        path = request.url.path.removeprefix("/v1.0")
        parts = path.strip("/").split("/")

        if path == "/users" and request.method == "POST":
            return self._create_user(directory_id, json.loads(request.content))
        if path == "/users" and request.method == "GET":
            return self._list_users(directory_id, request)
        if parts[0] == "users" and len(parts) == 2:
            return self._user(parts[1], request)
        if parts[0] == "users" and len(parts) == 3 and parts[2] == "assignLicense":
            return self._assign_license(parts[1], json.loads(request.content))
        if path == "/subscribedSkus":
            return httpx.Response(200, json={"value": self.skus.get(directory_id, [])})
        if path == "/directory/subscriptions":
            return httpx.Response(200, json={"value": self.subscriptions.get(directory_id, [])})

        return _error(404, "Resource not found")

    def _issue_token(self, request: httpx.Request) -> httpx.Response:
        form = dict(httpx.QueryParams(request.content.decode()))
        if form.get("grant_type") != "client_credentials":
            return httpx.Response(400, json={"error_description": "unsupported grant"})
        directory_id = request.url.path.split("/")[1]
        token = f"{directory_id}:{len(self.issued_tokens) + 1}"
        self.issued_tokens.append(token)
        return httpx.Response(200, json={"access_token": token, "expires_in": 3600})

    def _create_user(self, directory_id: str, body: dict) -> httpx.Response:
        if self.create_error:
            return _error(400, self.create_error)
        if self.account_by_name(body["userPrincipalName"]):
            return _error(
                400,
                "Another object with the same value for property userPrincipalName already exists.",
            )
        account_id = self.add_account(body["userPrincipalName"], directory_id)
        self.passwords[account_id] = body["passwordProfile"]["password"]
        return httpx.Response(201, json=self.accounts[account_id])

    def _list_users(self, directory_id: str, request: httpx.Request) -> httpx.Response:
        users = [a for a in self.accounts.values() if a["directory_id"] == directory_id]
        if not self.page_size:
            return httpx.Response(200, json={"value": users})

        offset = int(request.url.params.get("$skiptoken", "0"))
        body = {"value": users[offset : offset + self.page_size]}
        if offset + self.page_size < len(users):
            body["@odata.nextLink"] = (
                f"https://graph.microsoft.com/v1.0/users?$skiptoken={offset + self.page_size}"
            )
        return httpx.Response(200, json=body)

    def _user(self, account_id: str, request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and self.lookup_fails:
            return _error(500, "Internal error")
        account = self.accounts.get(account_id)
        if account is None:
            return _error(404, "Resource does not exist")

        if request.method == "GET":
            return httpx.Response(200, json={"userPrincipalName": account["userPrincipalName"]})
        if request.method == "DELETE":
            del self.accounts[account_id]
            return httpx.Response(204)
        if request.method == "PATCH":
            body = json.loads(request.content)
            self.passwords[account_id] = body["passwordProfile"]["password"]
            return httpx.Response(204)
        return _error(405, "Method not allowed")

    def _assign_license(self, account_id: str, body: dict) -> httpx.Response:
        if self.license_error:
            return _error(400, self.license_error)
        account = self.accounts.get(account_id)
        if account is None:
            return _error(404, "Resource does not exist")
        assigned = [lic for lic in account["assignedLicenses"] if lic["skuId"] not in body["removeLicenses"]]
        assigned.extend({"skuId": lic["skuId"]} for lic in body["addLicenses"])
        account["assignedLicenses"] = assigned
        return httpx.Response(200, json=account)


def _error(status_code: int, message: str) -> httpx.Response:
    return httpx.Response(status_code, json={"error": {"code": "Request_Error", "message": message}})


def captcha_handler(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    if body.get("secret") != "captcha-secret":
        return httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-secret"]})
    success = body.get("response") == GOOD_CAPTCHA
    return httpx.Response(200, json={"success": success})


def require_test_redis():
    url = os.getenv("TEST_REDIS_URL")
    if not url:
        pytest.skip("TEST_REDIS_URL not set; skipping Redis-dependent tests")
    return url


@pytest.fixture
def config():
    return PortalConfig(
        _env_file=None,
        environment=Environment.LOCAL,
        store_backend=StoreBackend.MEMORY,
        jwt_secret_key="test-secret",
        turnstile_secret_key="captcha-secret",
        turnstile_site_key="site-key",
        hidden_user="ghost@t1.example.com",
        graph_token_cache_enabled=False,
    )


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def graph_client(config, directory):
    return GraphClient(config, transport=httpx.MockTransport(directory.handler))


@pytest.fixture
def captcha_verifier(config):
    return CaptchaVerifier(config, transport=httpx.MockTransport(captcha_handler))


@pytest.fixture
def registry(store, config):
    return TenantRegistry(store, config)


@pytest.fixture
def ledger(store, registry, config):
    return InviteLedger(store, registry, config)


@pytest.fixture
async def tenant(registry):
    return await registry.create_tenant(Tenant(**T1))


@pytest.fixture
def make_workflow(registry, ledger, captcha_verifier, graph_client, config):
    def factory(**settings):
        return ProvisioningWorkflow(
            registry,
            ledger,
            captcha_verifier,
            graph_client,
            SiteSettings(**settings),
            config,
        )

    return factory


@pytest.fixture
def app(config, store, graph_client, captcha_verifier):
    return create_app(
        config=config,
        store=store,
        graph_client=graph_client,
        captcha_verifier=captcha_verifier,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin_headers(client):
    assert client.post("/admin/install", json={"password": ADMIN_PASSWORD}).status_code == 201
    resp = client.post("/admin/api/login", json={"password": ADMIN_PASSWORD})
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}
