"""
Lifespan FastAPI: construction et arrêt des ressources partagées (app.state).
- Sentry (si SENTRY_DSN)
- Clients Supabase (anon pour l'auth, service pour les données)
- Redis (bus d'événements), StripeGateway, CheckoutService, OrderService, EventBus
- FastAPILimiter (Redis) avec options de test:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from ecoshop.checkout.service import CheckoutService
from ecoshop.config import (
    RATE_LIMIT_REDIS_URL,
    REDIS_URL,
    STRIPE_CURRENCY,
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
)
from ecoshop.events.bus import EventBus
from ecoshop.infra.error_tracking import init_error_tracking
from ecoshop.infra.redis_client import create_redis
from ecoshop.infra.supabase_client import create_anon_client, create_service_client, try_create
from ecoshop.orders.service import OrderService
from ecoshop.payments.stripe_client import StripeGateway


async def init_rate_limit(app: FastAPI, logger: logging.Logger) -> None:
    """
    Configure le rate limiting et gère les fallbacks.
    - En cas d'échec de Redis et sans fallback, le rate limiting est désactivé proprement.
    """
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        await FastAPILimiter.init(create_redis(RATE_LIMIT_REDIS_URL))
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
        else:
            app.state.rate_limit_enabled = False
            logger.warning("Rate limiting disabled due to init error: %s", e)


def build_services(app: FastAPI) -> None:
    """Construit les services une seule fois; les vues les lisent via Depends."""
    logger = logging.getLogger("uvicorn.error")
    app.state.supabase = try_create(create_anon_client)
    app.state.service_supabase = try_create(create_service_client)
    if app.state.supabase is None or app.state.service_supabase is None:
        logger.warning("Supabase non configuré (SUPABASE_URL / clés manquantes)")

    app.state.redis = create_redis(REDIS_URL)
    app.state.stripe_gateway = StripeGateway(STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, STRIPE_CURRENCY)
    app.state.event_bus = EventBus(app.state.redis)
    app.state.checkout_service = CheckoutService(app.state.service_supabase, app.state.stripe_gateway)
    app.state.order_service = OrderService(
        app.state.service_supabase, app.state.event_bus, app.state.stripe_gateway,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    init_error_tracking()
    build_services(app)
    await init_rate_limit(app, logger)
    try:
        yield
    finally:
        await app.state.redis.aclose()
        logger.info("Ressources Redis libérées")
