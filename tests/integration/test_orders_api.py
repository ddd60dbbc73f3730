import pytest


def _row(**overrides):
    row = {
        "id": 42,
        "user_id": "u1",
        "amount": 5000,
        "currency": "usd",
        "status": "processing",
        "created_at": "2026-05-01T10:00:00+00:00",
        "order_items": [{
            "product_id": 1, "product_name": "Gourde inox", "quantity": 2,
            "unit_amount": 2500, "subtotal": 5000, "seller_id": "seller-1",
        }],
    }
    row.update(overrides)
    return row


@pytest.fixture()
def order_rows(monkeypatch):
    rows = {42: _row()}
    monkeypatch.setattr("ecoshop.orders.repository.get_order", lambda db, order_id: rows.get(order_id))
    monkeypatch.setattr("ecoshop.orders.repository.list_user_orders", lambda db, user_id: [r for r in rows.values() if r["user_id"] == user_id])
    monkeypatch.setattr(
        "ecoshop.orders.repository.list_seller_orders",
        lambda db, seller_id: [r for r in rows.values() if any(i["seller_id"] == seller_id for i in r["order_items"])],
    )
    return rows


def test_list_my_orders(client, login, order_rows):
    login(id="u1")
    r = client.get("/api/v1/orders")
    assert r.status_code == 200
    orders = r.json()["orders"]
    assert [o["id"] for o in orders] == [42]
    assert orders[0]["items"][0]["unit_amount"] == 2500
    assert orders[0]["status"] == "processing"


def test_order_of_someone_else_is_not_found(client, login, order_rows):
    login(id="u2")
    r = client.get("/api/v1/orders/42")
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"


def test_admin_can_read_any_order(client, login, order_rows):
    login(id="admin-1", role="admin")
    r = client.get("/api/v1/orders/42")
    assert r.status_code == 200
    assert r.json()["order"]["amount"] == 5000


def test_seller_orders_require_seller_role(client, login, order_rows):
    login(id="u1", role="user")
    assert client.get("/api/v1/orders/seller").status_code == 403

    login(id="seller-1", role="seller")
    r = client.get("/api/v1/orders/seller")
    assert r.status_code == 200
    assert [o["id"] for o in r.json()["orders"]] == [42]


def test_seller_moves_order_to_completed(client, login, order_rows, monkeypatch):
    updates = []
    monkeypatch.setattr(
        "ecoshop.orders.repository.update_status",
        lambda db, order_id, status, expected_current=None: updates.append((order_id, status, expected_current)) or True,
    )
    login(id="seller-1", role="seller")
    r = client.patch("/api/v1/orders/42/status", json={"status": "completed"})
    assert r.status_code == 200
    assert r.json()["order"]["status"] == "completed"
    assert updates == [(42, "completed", "processing")]


def test_forbidden_transition_is_409(client, login, order_rows):
    order_rows[42] = _row(status="refunded")
    login(id="seller-1", role="seller")
    r = client.patch("/api/v1/orders/42/status", json={"status": "processing"})
    assert r.status_code == 409
    assert r.json()["code"] == "INVALID_STATUS_TRANSITION"


def test_concurrent_update_is_409(client, login, order_rows, monkeypatch):
    monkeypatch.setattr("ecoshop.orders.repository.update_status", lambda db, order_id, status, expected_current=None: False)
    login(id="seller-1", role="seller")
    r = client.patch("/api/v1/orders/42/status", json={"status": "completed"})
    assert r.status_code == 409
    assert r.json()["code"] == "CONFLICT"


def test_other_seller_cannot_update(client, login, order_rows):
    login(id="seller-2", role="seller")
    r = client.patch("/api/v1/orders/42/status", json={"status": "completed"})
    assert r.status_code == 403


def test_unknown_status_value(client, login, order_rows):
    login(id="seller-1", role="seller")
    r = client.patch("/api/v1/orders/42/status", json={"status": "shipped"})
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_confirm_session_creates_order(client, services, login, product, monkeypatch):
    import json as _json

    services.gateway.get_session.return_value = {
        "id": "cs_test_123",
        "payment_status": "paid",
        "amount_total": 2500,
        "currency": "usd",
        "metadata": {"user_id": "u1", "items": _json.dumps([{"productId": 1, "quantity": 1}])},
    }
    monkeypatch.setattr("ecoshop.catalogue.repository.get_products_map", lambda db, ids: {1: product})
    monkeypatch.setattr(
        "ecoshop.orders.repository.create_order_from_checkout",
        lambda db, params: {"created": True, "oversold": [], "order": {
            "id": 7, "user_id": "u1", "amount": params["p_amount"], "status": params["p_status"], "order_items": params["p_items"],
        }},
    )
    login(id="u1")
    r = client.get("/api/v1/stripe/confirm", params={"session_id": "cs_test_123"})
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "created": True, "orderId": 7}

    login(id="u2")
    assert client.get("/api/v1/stripe/confirm", params={"session_id": "cs_test_123"}).status_code == 403
