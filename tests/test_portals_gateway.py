import asyncio

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config.permissions_config import get_role_permissions
from app.config.settings import settings
from app.core.gateway import PortalGatewayMiddleware, client_ip, rewrite_path
from app.core.rate_limit import FixedWindowRateLimiter, KVRestStore, MemoryStore
from app.modules.portals.service import login_redirect_url


@pytest.mark.parametrize("role, granted, denied", [
    ("user", ["withdrawals:create", "top_ups:create"], ["withdrawals:process", "top_ups:process", "reports:read"]),
    ("merchant", ["top_ups:review", "top_ups:process", "audit_logs:read"], ["withdrawals:process", "users:read"]),
    ("accounting", ["withdrawals:review", "withdrawals:process"], ["top_ups:process", "packages:manage"]),
    ("admin", ["withdrawals:process", "top_ups:process", "users:impersonate", "reports:read"], []),
])
def test_role_permissions(role, granted, denied):
    permissions = get_role_permissions(role)
    for name in granted:
        assert name in permissions
    for name in denied:
        assert name not in permissions


def test_unknown_role_has_no_permissions():
    assert get_role_permissions("owner") == []


def test_login_redirect_url():
    assert login_redirect_url("merchant") == "/merchant/login?next=/merchant/portal"
    assert login_redirect_url("accounting", "/accounting/portal", reason="accounting_only") == \
        "/accounting/login?next=/accounting/portal&reason=accounting_only"


def test_portal_login_page(client):
    response = client.get("/accounting/login?next=//evil.example.com")

    assert response.status_code == 200
    assert response.json() == {
        "portal": "accounting",
        "next": "/accounting/portal",
        "reason": None,
        "login_endpoint": "/api/v1/auth/login",
    }


def test_unknown_portal_is_not_found(client):
    assert client.get("/vault/login").status_code == 404
    assert client.get("/vault/portal").status_code == 404


def test_portal_without_token_redirects_to_login(client):
    response = client.get("/merchant/portal", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/merchant/login?next=/merchant/portal"


def test_portal_with_invalid_token_redirects_to_login(client):
    response = client.get("/admin/portal", headers={"Authorization": "Bearer stale"}, follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/admin/login?next=/admin/portal"


def test_portal_wrong_role_redirects_with_reason(client, make_user):
    _, headers = make_user(role="user")

    response = client.get("/merchant/portal", headers=headers, follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/merchant/login?next=/merchant/portal&reason=merchant_only"


def test_merchant_portal_navigation(client, make_user):
    merchant, headers = make_user(role="merchant")

    response = client.get("/merchant/portal", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == merchant["id"]
    assert body["role"] == "merchant"
    hrefs = [link["href"] for link in body["navigation"]]
    assert "/api/v1/merchant/pending-topups" in hrefs
    assert "/api/v1/merchant/audit-logs" in hrefs


def test_admin_may_enter_accounting_portal(client, make_user):
    _, headers = make_user(role="admin")

    response = client.get("/accounting/portal", headers=headers)

    assert response.status_code == 200
    assert [link["label"] for link in response.json()["navigation"]] == [
        "Withdrawals", "Process withdrawal", "Payout calendar"
    ]


def test_portal_root_redirects_to_login(client):
    response = client.get("/accounting", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/accounting/login?next=/accounting/portal"


def test_portal_host_rewrites_paths(client):
    login = client.get("/login", headers={"Host": "merchant.firststeps.test"})
    root = client.get("/", headers={"Host": "merchant.firststeps.test"}, follow_redirects=False)
    api = client.get("/health", headers={"Host": "merchant.firststeps.test"})

    assert login.status_code == 200
    assert login.json()["portal"] == "merchant"
    assert root.status_code == 307
    assert root.headers["location"] == "/merchant/login?next=/merchant/portal"
    assert api.json() == {"status": "healthy"}


def test_rewrite_path_leaves_shared_paths_alone():
    assert rewrite_path("/api/v1/auth/me", "merchant") == "/api/v1/auth/me"
    assert rewrite_path("/auth/callback", "merchant") == "/auth/callback"
    assert rewrite_path("/merchant/portal", "merchant") == "/merchant/portal"
    assert rewrite_path("/portal", "accounting") == "/accounting/portal"
    assert rewrite_path("/portal", None) == "/portal"


def test_security_headers(client):
    response = client.get("/health")
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"


def limited_app(limiter):
    api = FastAPI()

    @api.get("/api/ping")
    async def ping():
        return {"pong": True}

    @api.get("/static")
    async def static():
        return {"ok": True}

    api.add_middleware(PortalGatewayMiddleware, limiter=limiter)
    return api


def test_gateway_limits_api_calls_per_ip():
    limiter = FixedWindowRateLimiter(MemoryStore(), limit=2, window_seconds=3600)
    client = TestClient(limited_app(limiter))

    first = client.get("/api/ping")
    second = client.get("/api/ping")
    third = client.get("/api/ping")
    spoofed = client.get("/api/ping", headers={"X-Forwarded-For": "203.0.113.7"})

    assert first.status_code == 200
    assert first.headers["x-ratelimit-limit"] == "2"
    assert first.headers["x-ratelimit-remaining"] == "1"
    assert second.headers["x-ratelimit-remaining"] == "0"
    assert third.status_code == 429
    assert third.json() == {"detail": "Too many requests"}
    assert int(third.headers["retry-after"]) >= 1
    assert spoofed.status_code == 429


def test_gateway_ignores_forwarded_for_from_direct_clients():
    limiter = FixedWindowRateLimiter(MemoryStore(), limit=2, window_seconds=3600)
    client = TestClient(limited_app(limiter))

    statuses = [
        client.get("/api/ping", headers={"X-Forwarded-For": f"203.0.113.{n}"}).status_code for n in range(4)
    ]

    assert statuses == [200, 200, 429, 429]


def test_gateway_reads_forwarded_for_behind_trusted_proxy(monkeypatch):
    monkeypatch.setattr(settings, "trusted_proxies", "testclient, 10.0.0.2")
    limiter = FixedWindowRateLimiter(MemoryStore(), limit=1, window_seconds=3600)
    client = TestClient(limited_app(limiter))

    first = client.get("/api/ping", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})
    same = client.get("/api/ping", headers={"X-Forwarded-For": "198.51.100.1, 203.0.113.7"})
    other = client.get("/api/ping", headers={"X-Forwarded-For": "198.51.100.9"})

    assert first.status_code == 200
    assert same.status_code == 429
    assert other.status_code == 200


@pytest.mark.parametrize("trusted, peer, forwarded, expected", [
    ("", "192.0.2.1", b"203.0.113.7", "192.0.2.1"),
    ("10.0.0.1", "192.0.2.1", b"203.0.113.7", "192.0.2.1"),
    ("10.0.0.1", "10.0.0.1", b"198.51.100.1, 203.0.113.7", "203.0.113.7"),
    ("10.0.0.1,10.0.0.2", "10.0.0.1", b"203.0.113.7, 10.0.0.2", "203.0.113.7"),
    ("10.0.0.1", "10.0.0.1", None, "10.0.0.1"),
])
def test_client_ip(monkeypatch, trusted, peer, forwarded, expected):
    monkeypatch.setattr(settings, "trusted_proxies", trusted)
    headers = [(b"x-forwarded-for", forwarded)] if forwarded else []

    assert client_ip({"client": (peer, 50000), "headers": headers}) == expected


def test_gateway_skips_non_api_paths():
    limiter = FixedWindowRateLimiter(MemoryStore(), limit=1, window_seconds=3600)
    client = TestClient(limited_app(limiter))

    statuses = [client.get("/static").status_code for _ in range(3)]

    assert statuses == [200, 200, 200]


class BrokenStore:
    async def incr(self, key, ttl_seconds):
        raise ConnectionError("store down")


def test_limiter_fails_open_when_store_is_down():
    limiter = FixedWindowRateLimiter(BrokenStore(), limit=1, window_seconds=60)

    results = [asyncio.run(limiter.hit("198.51.100.1")) for _ in range(3)]

    assert all(result.allowed for result in results)


def test_kv_store_pipeline(monkeypatch):
    sent = {}

    async def fake_post(self, url, headers=None, json=None):
        sent.update(url=url, headers=headers, json=json)
        return httpx.Response(200, json=[{"result": 3}, {"result": 1}], request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx.AsyncClient, "post", fake_post)
    limiter = FixedWindowRateLimiter(KVRestStore("https://kv.test/", "kv-token"), limit=2, window_seconds=60,
                                     key_prefix="rl")

    result = asyncio.run(limiter.hit("198.51.100.1"))

    assert result.allowed is False
    assert sent["url"] == "https://kv.test/pipeline"
    assert sent["headers"] == {"Authorization": "Bearer kv-token"}
    key = sent["json"][0][1]
    assert key.startswith("rl:198.51.100.1:")
    assert sent["json"] == [["INCR", key], ["EXPIRE", key, "60", "NX"]]


def test_kv_store_unreachable_fails_open(monkeypatch):
    async def refused(self, url, headers=None, json=None):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx.AsyncClient, "post", refused)
    limiter = FixedWindowRateLimiter(KVRestStore("https://kv.test", None), limit=1, window_seconds=60)

    result = asyncio.run(limiter.hit("198.51.100.1"))

    assert result.allowed is True
    assert result.remaining == 1
