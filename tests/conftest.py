import os

# Avant l'import de l'app: pas de FastAPILimiter réel, Redis en mémoire
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("USE_FAKE_REDIS_FOR_TESTS", "1")

import pytest
from types import SimpleNamespace
from typing import Any, Dict, Generator
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from ecoshop.app import app as fastapi_app
from ecoshop.auth.security import get_current_user
from ecoshop.checkout.service import CheckoutService
from ecoshop.orders.service import OrderService

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def services(app):
    """
    Remplace les ressources du lifespan (app.state) par des doubles:
    Supabase (MagicMock), StripeGateway (MagicMock), bus d'événements (publish AsyncMock).
    """
    db = MagicMock(name="service_supabase")
    gateway = MagicMock(name="stripe_gateway")
    gateway.currency = "usd"
    gateway.create_session.return_value = {"id": "cs_test_123", "url": "https://checkout.stripe.test/cs_test_123"}
    bus = MagicMock(name="event_bus")
    bus.publish = AsyncMock(return_value="evt_1")

    app.state.supabase = MagicMock(name="anon_supabase")
    app.state.service_supabase = db
    app.state.stripe_gateway = gateway
    app.state.event_bus = bus
    app.state.checkout_service = CheckoutService(db, gateway, base_url="http://shop.test")
    app.state.order_service = OrderService(db, bus, gateway)
    app.state.rate_limit_enabled = False
    app.state._rl_store = {}
    return SimpleNamespace(db=db, gateway=gateway, bus=bus)

@pytest.fixture()
def client(app, services) -> Generator[TestClient, None, None]:
    # Sans "with": le lifespan ne remplace pas les doubles posés par `services`
    c = TestClient(app, raise_server_exceptions=False)
    yield c
    app.dependency_overrides.clear()

@pytest.fixture()
def login(app):
    """Simule un utilisateur authentifié: login(role="seller", id="s1")."""
    def _login(role: str = "user", **extra) -> Dict[str, Any]:
        user: Dict[str, Any] = {
            "id": "test-user",
            "email": "test@example.com",
            "role": role,
            "metadata": {"full_name": "Test User"},
            "token": "fake-token",
        }
        user.update(extra)
        app.dependency_overrides[get_current_user] = lambda: user
        return user
    yield _login
    app.dependency_overrides.pop(get_current_user, None)

@pytest.fixture()
def product():
    return {"id": 1, "name": "Gourde inox", "description": "500 ml", "price": "25.00", "stock": 5, "seller_id": "seller-1"}
