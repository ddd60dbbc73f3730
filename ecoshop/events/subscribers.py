"""
Abonnés du bus d'événements et tâches planifiées.

Chaque abonné est idempotent: le bus ne le rejoue qu'en cas d'échec, et les effets
partiels (un e-mail par vendeur) sont marqués individuellement.
"""
import logging
from typing import Optional

import httpx
from supabase import Client

from ecoshop.cart import repository as cart_repo
from ecoshop.catalogue import images
from ecoshop.catalogue import repository as products_repo
from ecoshop.catalogue.views import IMAGE_UPLOADED
from ecoshop.config import CART_TTL_DAYS, SUPABASE_IMAGES_BUCKET
from ecoshop.currency import rates
from ecoshop.notifications.email import EmailSender
from ecoshop.orders.service import ORDER_CREATED
from .bus import DONE_TTL_SECONDS, Event, EventBus

logger = logging.getLogger(__name__)

EXCHANGE_RATES_EVERY = 6 * 3600
CART_CLEANUP_EVERY = 24 * 3600


class Subscribers:
    def __init__(
        self,
        *,
        db: Client,
        redis,
        email: EmailSender,
        http: httpx.AsyncClient,
        images_bucket: str = SUPABASE_IMAGES_BUCKET,
        cart_ttl_days: int = CART_TTL_DAYS,
    ):
        self.db = db
        self.redis = redis
        self.email = email
        self.http = http
        self.images_bucket = images_bucket
        self.cart_ttl_days = cart_ttl_days

    def _seller_email(self, seller_id: str) -> Optional[str]:
        res = self.db.auth.admin.get_user_by_id(seller_id)
        user = getattr(res, "user", None)
        return getattr(user, "email", None)

    async def send_order_confirmation(self, event: Event) -> None:
        await self.email.send_order_confirmation(event.data.get("orderData") or {})

    async def send_seller_notification(self, event: Event) -> None:
        for seller in event.data.get("sellerData") or []:
            sent_key = f"events:sent:{event.id}:{seller.get('sellerId')}"
            if await self.redis.exists(sent_key):
                continue
            to = self._seller_email(seller.get("sellerId"))
            if not to:
                logger.warning("events.seller_notification no email seller_id=%s", seller.get("sellerId"))
                continue
            await self.email.send_seller_notification(to, seller)
            await self.redis.set(sent_key, "1", ex=DONE_TTL_SECONDS)

    async def process_image_optimization(self, event: Event) -> None:
        image_id = event.data.get("imageId")
        product_id = event.data.get("productId")
        raw = await images.download(self.http, event.data["imageUrl"])
        optimized = images.optimize_image(raw)
        path = images.optimized_path(product_id, image_id)
        url = images.upload_optimized(self.db, self.images_bucket, path, optimized)
        products_repo.set_optimized_image_url(self.db, image_id=image_id, optimized_url=url)
        logger.info(
            "events.image_optimized product_id=%s image_id=%s bytes=%s->%s",
            product_id, image_id, len(raw), len(optimized),
        )

    async def update_exchange_rates(self) -> None:
        await rates.refresh_rates(self.redis, self.http)

    async def cleanup_expired_carts(self) -> None:
        cart_repo.delete_expired(self.db, self.cart_ttl_days)


def register_subscribers(bus: EventBus, subs: Subscribers) -> EventBus:
    bus.subscribe("send-order-confirmation", ORDER_CREATED, subs.send_order_confirmation)
    bus.subscribe("send-seller-notification", ORDER_CREATED, subs.send_seller_notification)
    bus.subscribe("process-image-optimization", IMAGE_UPLOADED, subs.process_image_optimization)
    bus.schedule("update-exchange-rates", EXCHANGE_RATES_EVERY, subs.update_exchange_rates)
    bus.schedule("cleanup-expired-carts", CART_CLEANUP_EVERY, subs.cleanup_expired_carts)
    return bus
