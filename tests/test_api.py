from fastapi.testclient import TestClient

from portal_core.api_gateway.main import create_app
from portal_core.tenant_management.models import Tenant

from .conftest import ADMIN_PASSWORD, GOOD_CAPTCHA, T1


def register(client, **overrides):
    body = {
        "username": "alice42",
        "password": "Tr0ub4dor&3",
        "tenant_id": "t1",
        "sku_name": "E5",
        "cf-turnstile-response": GOOD_CAPTCHA,
    }
    body.update(overrides)
    return client.post("/", json=body)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert "X-Request-ID" in resp.headers


def test_install_only_once(client):
    assert client.get("/admin/install").json() == {"installed": False}

    resp = client.post("/admin/install", json={"password": "password"})
    assert resp.status_code == 400

    resp = client.post("/admin/install", json={"password": ADMIN_PASSWORD})
    assert resp.status_code == 201
    assert client.get("/admin/install").json() == {"installed": True}

    resp = client.post("/admin/install", json={"password": "An0ther-Passw0rd"})
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_installed"


def test_login_before_install(client):
    resp = client.post("/admin/api/login", json={"password": ADMIN_PASSWORD})
    assert resp.status_code == 401
    assert resp.json()["code"] == "not_installed"


def test_login_wrong_password(client, admin_headers):
    resp = client.post("/admin/api/login", json={"password": "wrong"})
    assert resp.status_code == 401


def test_admin_routes_require_session(client):
    for method, path in (
        ("get", "/admin/api/tenants"),
        ("get", "/admin/api/invites"),
        ("get", "/admin/api/users"),
        ("get", "/admin/api/licenses"),
        ("get", "/admin/api/settings"),
    ):
        assert getattr(client, method)(path).status_code == 401
    resp = client.get("/admin/api/tenants", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_logout_revokes_session(client, admin_headers):
    assert client.get("/admin/api/tenants", headers=admin_headers).status_code == 200
    assert client.post("/admin/api/logout", headers=admin_headers).status_code == 204
    assert client.get("/admin/api/tenants", headers=admin_headers).status_code == 401


def test_tenant_crud(client, admin_headers):
    resp = client.post("/admin/api/tenants", json=T1, headers=admin_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["client_secret_set"] is True
    assert "client_secret" not in body

    assert client.post("/admin/api/tenants", json=T1, headers=admin_headers).status_code == 400

    resp = client.patch("/admin/api/tenants/t1", json={"sku_map": {"E5": "sku-999"}}, headers=admin_headers)
    assert resp.json()["sku_map"] == {"E5": "sku-999"}

    assert client.get("/admin/api/tenants", headers=admin_headers).json()["total"] == 1
    assert client.delete("/admin/api/tenants/t1", headers=admin_headers).status_code == 204
    assert client.get("/admin/api/tenants/t1", headers=admin_headers).status_code == 404


def test_registration_options(client, admin_headers):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)

    body = client.get("/api/options").json()
    assert body["invite_required"] is False
    assert body["captcha_site_key"] == "site-key"
    assert body["tenants"] == [
        {"id": "t1", "label": "Tenant One", "domain": "t1.example.com", "sku_names": ["E5", "A1"]}
    ]


def test_register_account(client, admin_headers, directory):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)

    resp = register(client)

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["address"] == "alice42@t1.example.com"
    assert body["state"] == "done"


def test_register_partial_success(client, admin_headers, directory):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)
    directory.license_error = "No available licenses"

    resp = register(client)

    assert resp.status_code == 207
    body = resp.json()
    assert body["error_kind"] == "partial_success"
    assert body["address"] == "alice42@t1.example.com"
    assert body["license_error"] == "No available licenses"


def test_register_rejections(client, admin_headers):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)

    assert register(client, username="admin").status_code == 403
    assert register(client, password="abcd1234").status_code == 400
    assert register(client, **{"cf-turnstile-response": "nope"}).status_code == 400


def test_settings_update_and_invite_mode(client, admin_headers):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)

    resp = client.post(
        "/admin/api/settings",
        json={"invite_required": True, "protected_prefixes": ["alice42"]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["protected_prefixes"] == ["alice42"]

    resp = register(client, username="bob7")
    assert resp.json()["code"] == "invite_required"

    resp = client.post("/admin/api/settings", json={"usage_location": "USA"}, headers=admin_headers)
    assert resp.status_code == 400


def test_invite_lifecycle(client, admin_headers):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)
    client.post("/admin/api/settings", json={"invite_required": True}, headers=admin_headers)

    resp = client.post(
        "/admin/api/invites",
        json={
            "char_classes": ["uppercase"],
            "length": 10,
            "quantity": 3,
            "per_code_limit": 1,
            "allowed_scopes": [{"tenant_id": "t1", "sku_name": "E5"}],
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    codes = [invite["code"] for invite in resp.json()["invites"]]
    assert len(codes) == 3

    resp = register(client, invite_code=codes[0])
    assert resp.status_code == 201
    resp = register(client, username="bob7", invite_code=codes[0])
    assert resp.status_code == 409

    listed = client.get("/admin/api/invites", headers=admin_headers).json()
    used = {i["code"]: i["used"] for i in listed["invites"]}
    assert used[codes[0]] == 1

    resp = client.post("/admin/api/invites/bulk-delete", json={"codes": codes[:2]}, headers=admin_headers)
    assert resp.json() == {"deleted": 2}
    assert client.delete(f"/admin/api/invites/{codes[2]}", headers=admin_headers).status_code == 204
    assert client.delete(f"/admin/api/invites/{codes[2]}", headers=admin_headers).status_code == 404


def test_generate_invites_requires_scope(client, admin_headers):
    resp = client.post("/admin/api/invites", json={"allowed_scopes": []}, headers=admin_headers)
    assert resp.status_code == 400


def test_user_listing_hides_and_flags(client, admin_headers, directory):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)
    directory.add_account("ghost@t1.example.com")
    directory.add_account("admin@t1.example.com")
    directory.add_account("carol@t1.example.com")

    body = client.get("/admin/api/users", headers=admin_headers).json()

    flags = {a["principal_name"]: a["protected"] for a in body["accounts"]}
    assert flags == {"admin@t1.example.com": True, "carol@t1.example.com": False}
    assert body["failed_tenants"] == []


def test_user_mutations(client, admin_headers, directory):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)
    admin = directory.add_account("admin@t1.example.com")
    carol = directory.add_account("carol@t1.example.com")

    assert client.delete(f"/admin/api/tenants/t1/users/{admin}", headers=admin_headers).status_code == 403

    resp = client.patch(f"/admin/api/tenants/t1/users/{carol}/password", json={}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["password"] == directory.passwords[carol]

    resp = client.patch(
        f"/admin/api/tenants/t1/users/{carol}/password", json={"password": "abcd1234"}, headers=admin_headers
    )
    assert resp.status_code == 400

    resp = client.post(f"/admin/api/tenants/t1/users/{carol}/license", json={"sku_name": "A1"}, headers=admin_headers)
    assert resp.json()["assigned"] is True
    assert directory.accounts[carol]["assignedLicenses"] == [{"skuId": "sku-456"}]

    resp = client.post(f"/admin/api/tenants/t1/users/{admin}/license", json={"sku_name": "A1"}, headers=admin_headers)
    assert resp.status_code == 403

    assert client.delete(f"/admin/api/tenants/t1/users/{carol}", headers=admin_headers).status_code == 204
    assert carol not in directory.accounts


def test_license_summary(client, admin_headers, directory):
    client.post("/admin/api/tenants", json=T1, headers=admin_headers)
    directory.skus["dir-1"] = [
        {"skuId": "sku-123", "skuPartNumber": "E5", "prepaidUnits": {"enabled": 10}, "consumedUnits": 15}
    ]

    body = client.get("/admin/api/licenses", headers=admin_headers).json()

    [summary] = body["licenses"]
    assert summary["remaining"] == 0
    assert summary["tenant_id"] == "t1"


async def test_install_reports_existing_default_tenant_as_not_seeded(client, registry):
    await registry.create_tenant(Tenant(**{**T1, "id": "default"}))

    resp = client.post("/admin/install", json={"password": ADMIN_PASSWORD})

    assert resp.status_code == 201
    assert resp.json()["bootstrap_tenant_seeded"] is False


def test_install_seeds_bootstrap_tenant(config, store, graph_client, captcha_verifier):
    config = config.model_copy(
        update={
            "azure_tenant_id": "dir-env",
            "azure_client_id": "client-env",
            "azure_client_secret": "secret-env",
            "default_domain": "env.example.com",
            "sku_map": '{"E5": "sku-env"}',
        }
    )
    app = create_app(config=config, store=store, graph_client=graph_client, captcha_verifier=captcha_verifier)

    with TestClient(app) as client:
        resp = client.post("/admin/install", json={"password": ADMIN_PASSWORD})
        assert resp.json() == {"installed": True, "bootstrap_tenant_seeded": True}
        assert client.get("/api/options").json()["tenants"][0]["id"] == "default"
