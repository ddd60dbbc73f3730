import pytest

from ecoshop.errors import InvalidStatusTransition
from ecoshop.orders.models import Order, OrderStatus, ensure_transition


@pytest.mark.parametrize("current,target", [
    ("pending", "processing"),
    ("pending", "failed"),
    ("processing", "completed"),
    ("processing", "failed"),
    ("processing", "refunded"),
    ("completed", "refunded"),
])
def test_allowed_transitions(current, target):
    assert ensure_transition(current, target) is True


@pytest.mark.parametrize("current,target", [
    ("pending", "completed"),
    ("pending", "refunded"),
    ("completed", "processing"),
    ("failed", "processing"),
    ("refunded", "completed"),
])
def test_forbidden_transitions(current, target):
    with pytest.raises(InvalidStatusTransition) as exc:
        ensure_transition(current, target)
    assert exc.value.status_code == 409
    assert exc.value.code == "INVALID_STATUS_TRANSITION"


def test_same_status_is_a_noop():
    assert ensure_transition(OrderStatus.REFUNDED, OrderStatus.REFUNDED) is False


def test_order_from_row_maps_joined_items():
    row = {
        "id": 3,
        "user_id": "u1",
        "amount": 5000,
        "currency": "usd",
        "status": "processing",
        "stripe_checkout_session_id": "cs_1",
        "created_at": "2026-10-01T10:00:00+00:00",
        "order_items": [
            {"id": 9, "order_id": 3, "product_id": 1, "product_name": "Gourde", "quantity": 2,
             "unit_amount": 2500, "subtotal": 5000, "seller_id": None},
        ],
    }
    order = Order.from_row(row)
    assert order.status is OrderStatus.PROCESSING
    assert order.items[0].product_name == "Gourde"
    payload = order.to_event_payload()
    assert payload["status"] == "processing"
    assert payload["items"][0]["subtotal"] == 5000
    assert payload["created_at"].startswith("2026-10-01T10:00:00")
