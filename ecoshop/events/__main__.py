"""
Worker du bus d'événements.

Usage:
    python -m ecoshop.events

Variables d'environnement:
- REDIS_URL: flux d'événements
- SUPABASE_URL / SUPABASE_SERVICE_KEY: accès service (commandes, images, paniers)
- RESEND_API_KEY: envoi des e-mails (sans clé: envois ignorés et loggés)
- SENTRY_DSN: suivi des erreurs des abonnés (optionnel)
- LOG_LEVEL: niveau de logs (ex: "info", "debug")
"""
import asyncio
import logging
import os
import signal

import httpx

from ecoshop.config import REDIS_URL
from ecoshop.events.bus import EventBus
from ecoshop.events.subscribers import Subscribers, register_subscribers
from ecoshop.infra.error_tracking import init_error_tracking
from ecoshop.infra.redis_client import create_redis
from ecoshop.infra.supabase_client import create_service_client
from ecoshop.notifications.email import EmailSender

logger = logging.getLogger("ecoshop.events")


async def main() -> None:
    init_error_tracking()
    redis = create_redis(REDIS_URL)
    db = create_service_client()
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with httpx.AsyncClient() as http:
        bus = EventBus(redis, consumer=os.getenv("EVENTS_CONSUMER_NAME") or None)
        subs = Subscribers(db=db, redis=redis, email=EmailSender(http), http=http)
        register_subscribers(bus, subs)
        try:
            await bus.run_forever(stop)
        finally:
            await redis.aclose()


def run() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "info").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
