import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from unittest.mock import AsyncMock, MagicMock

from ecoshop.currency.rates import DEFAULT_RATES
from ecoshop.infra.redis_client import get_redis


def test_health_root(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_health_supabase_checks_tables(client, services):
    services.db.table.return_value.select.return_value.limit.return_value.execute.return_value = MagicMock(data=[{"id": 1}])
    r = client.get("/health/supabase")
    assert r.status_code == 200
    body = r.json()
    assert set(body["tables"]) == {"products", "orders", "order_items", "cart_items"}
    assert body["connect_ok"] is True


def test_health_supabase_reports_table_errors(client, services):
    services.db.table.return_value.select.return_value.limit.return_value.execute.side_effect = Exception("relation does not exist")
    body = client.get("/health/supabase").json()
    assert body["connect_ok"] is False
    assert "relation does not exist" in body["tables"]["orders"]["error"]


def test_health_events_reports_dead_letter_size(client, app):
    redis = MagicMock()
    redis.ping = AsyncMock(return_value=True)
    redis.xlen = AsyncMock(return_value=3)
    app.state.redis = redis
    assert client.get("/health/events").json() == {"redis_ok": True, "dead_letter": 3, "error": None}


def test_health_events_reports_redis_errors(client, app):
    redis = MagicMock()
    redis.ping = AsyncMock(side_effect=ConnectionError("refused"))
    app.state.redis = redis
    body = client.get("/health/events").json()
    assert body["redis_ok"] is False
    assert "refused" in body["error"]


def test_currency_rates_default_values(client, app):
    redis = MagicMock()
    redis.hgetall = AsyncMock(return_value={})
    app.dependency_overrides[get_redis] = lambda: redis
    r = client.get("/api/v1/currency/rates")
    assert r.status_code == 200
    assert r.json() == {"base": "USD", "rates": DEFAULT_RATES, "updatedAt": None}


def test_cookie_session_requires_csrf_token(client, services, login):
    login(id="u1")
    client.cookies.set("sb_access", "cookie-session")

    r = client.delete("/api/v1/cart")
    assert r.status_code == 403
    assert r.json()["code"] == "FORBIDDEN"

    client.cookies.set("csrf_token", "abc")
    services.db.table.return_value.delete.return_value.eq.return_value.execute.return_value = MagicMock(data=[])
    r = client.delete("/api/v1/cart", headers={"X-CSRF-Token": "abc"})
    assert r.status_code == 200


def test_bearer_requests_skip_csrf(client, services, login):
    login(id="u1")
    services.db.table.return_value.delete.return_value.eq.return_value.execute.return_value = MagicMock(data=[])
    r = client.delete("/api/v1/cart", headers={"Authorization": "Bearer token"})
    assert r.status_code == 200
    assert r.json() == {"deleted": 0}


def test_forwarded_http_is_redirected_to_https(client):
    r = client.get("/health", headers={"x-forwarded-proto": "http"}, follow_redirects=False)
    assert r.status_code == 301
    assert r.headers["location"].startswith("https://")
