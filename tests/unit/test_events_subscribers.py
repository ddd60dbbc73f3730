import io
import pytest
from types import SimpleNamespace
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from PIL import Image
from unittest.mock import AsyncMock, MagicMock

from ecoshop.events.bus import Event, EventBus
from ecoshop.events.subscribers import Subscribers, register_subscribers


def _subs(db=None, email=None):
    redis = FakeRedis(server=FakeServer(), decode_responses=True)
    email = email or MagicMock()
    return Subscribers(db=db or MagicMock(), redis=redis, email=email, http=MagicMock(), cart_ttl_days=30), redis


def _seller_event():
    return Event(id="order/created:1", name="order/created", data={
        "orderData": {"id": 1},
        "sellerData": [
            {"sellerId": "s1", "orderId": 1, "items": [], "subtotal": 1000},
            {"sellerId": "s2", "orderId": 1, "items": [], "subtotal": 2000},
        ],
    })


@pytest.mark.asyncio
async def test_order_confirmation_sends_customer_email():
    email = MagicMock()
    email.send_order_confirmation = AsyncMock()
    subs, _ = _subs(email=email)

    await subs.send_order_confirmation(Event(id="e1", name="order/created", data={"orderData": {"id": 1, "customer_email": "c@x.test"}}))
    email.send_order_confirmation.assert_awaited_once_with({"id": 1, "customer_email": "c@x.test"})


@pytest.mark.asyncio
async def test_seller_notification_retry_only_resends_missing_sellers():
    db = MagicMock()
    db.auth.admin.get_user_by_id.side_effect = lambda sid: SimpleNamespace(user=SimpleNamespace(email=f"{sid}@shop.test"))
    email = MagicMock()
    email.send_seller_notification = AsyncMock(side_effect=[None, RuntimeError("resend down")])
    subs, _ = _subs(db=db, email=email)

    with pytest.raises(RuntimeError):
        await subs.send_seller_notification(_seller_event())

    email.send_seller_notification = AsyncMock()
    await subs.send_seller_notification(_seller_event())
    email.send_seller_notification.assert_awaited_once()
    assert email.send_seller_notification.await_args.args[0] == "s2@shop.test"


@pytest.mark.asyncio
async def test_image_optimization_uploads_webp_and_records_url(monkeypatch):
    buf = io.BytesIO()
    Image.new("RGB", (2400, 1200), "green").save(buf, format="PNG")
    monkeypatch.setattr("ecoshop.catalogue.images.download", AsyncMock(return_value=buf.getvalue()))
    upload = MagicMock(return_value="https://cdn.test/products/1/7.webp")
    monkeypatch.setattr("ecoshop.catalogue.images.upload_optimized", upload)
    record = MagicMock(return_value=True)
    monkeypatch.setattr("ecoshop.catalogue.repository.set_optimized_image_url", record)
    subs, _ = _subs()

    await subs.process_image_optimization(Event(
        id="e2", name="product/image-uploaded",
        data={"imageId": 7, "productId": 1, "imageUrl": "https://img.test/raw.png"},
    ))

    _client, bucket, path, data = upload.call_args.args
    assert path == "products/1/7.webp"
    assert Image.open(io.BytesIO(data)).format == "WEBP"
    record.assert_called_once_with(subs.db, image_id=7, optimized_url="https://cdn.test/products/1/7.webp")


@pytest.mark.asyncio
async def test_cleanup_expired_carts_uses_ttl(monkeypatch):
    delete = MagicMock(return_value=4)
    monkeypatch.setattr("ecoshop.cart.repository.delete_expired", delete)
    subs, _ = _subs()
    await subs.cleanup_expired_carts()
    delete.assert_called_once_with(subs.db, 30)


@pytest.mark.asyncio
async def test_update_exchange_rates_refreshes_cache(monkeypatch):
    refresh = AsyncMock(return_value={"USD": "1"})
    monkeypatch.setattr("ecoshop.currency.rates.refresh_rates", refresh)
    subs, redis = _subs()
    await subs.update_exchange_rates()
    refresh.assert_awaited_once_with(redis, subs.http)


def test_register_subscribers_wires_events_and_jobs():
    subs, redis = _subs()
    bus = register_subscribers(EventBus(redis, consumer="t"), subs)
    assert [(s.name, s.event) for s in bus.subscribers] == [
        ("send-order-confirmation", "order/created"),
        ("send-seller-notification", "order/created"),
        ("process-image-optimization", "product/image-uploaded"),
    ]
    assert {j.name: j.every_seconds for j in bus.jobs} == {
        "update-exchange-rates": 6 * 3600,
        "cleanup-expired-carts": 24 * 3600,
    }
