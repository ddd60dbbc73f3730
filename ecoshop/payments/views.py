# module ecoshop.payments.views

"""Endpoints Stripe.
- /create-checkout-session: valide le panier, vérifie le stock, tarifie et crée la session Stripe.
- /webhook: événements Stripe signés (création de commande, statuts de paiement, remboursements).
- /confirm: alternative sans webhook, crée la commande après vérification de la session.
Sécurité:
- optional_rate_limit (10 req / 10 min) puis require_user, avant toute validation du corps.
- Les erreurs métier (ecoshop.errors) sont converties en {"error", "code"} par les handlers.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ecoshop.auth.security import require_user
from ecoshop.checkout.cart import parse_checkout_request
from ecoshop.checkout.service import CheckoutService
from ecoshop.errors import ValidationError
from ecoshop.orders.service import OrderService
from ecoshop.payments.stripe_client import StripeGateway
from ecoshop.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/stripe", tags=["Stripe API"])


def get_checkout_service(request: Request) -> CheckoutService:
    return request.app.state.checkout_service


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_stripe_gateway(request: Request) -> StripeGateway:
    return request.app.state.stripe_gateway


@router.post(
    "/create-checkout-session",
    status_code=201,
    dependencies=[Depends(optional_rate_limit(times=10, seconds=600))],
)
async def create_checkout_session(
    request: Request,
    user: Dict[str, Any] = Depends(require_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Crée une session Checkout Stripe pour le panier envoyé.
    - Entrée JSON: {"items": [{"productId": <int>, "quantity": <int>}], "successUrl"?, "cancelUrl"?, "shippingAddress"?}
    - 201: {"success": true, "sessionId", "sessionUrl"}
    - 400 VALIDATION_ERROR / PRODUCT_NOT_FOUND / INSUFFICIENT_STOCK, 401, 429, 502 PAYMENT_PROVIDER_ERROR
    """
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Corps JSON invalide")
    checkout_request = parse_checkout_request(body)
    result = service.create_checkout_session(user=user, request=checkout_request)
    return JSONResponse(
        status_code=201,
        content={"success": True, "sessionId": result["session_id"], "sessionUrl": result["session_url"]},
    )


@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    orders: OrderService = Depends(get_order_service),
):
    """
    Webhook Stripe.
    - Signature invalide ou absente: 400 (Stripe ne rejoue pas).
    - Erreur de traitement: 500 via le handler global, Stripe rejouera l'événement;
      la création de commande est idempotente sur l'id de session.
    """
    payload = await request.body()
    event = gateway.parse_event(payload, request.headers.get("stripe-signature"))
    return await orders.handle_stripe_event(event)


@router.get("/confirm")
async def confirm_checkout(
    session_id: str,
    user: Dict[str, Any] = Depends(require_user),
    orders: OrderService = Depends(get_order_service),
):
    """Alternative sans webhook: vérifie la session (payée, même utilisateur) et crée la commande."""
    result = await orders.confirm_session(session_id, user)
    return {"status": "ok", "created": result["created"], "orderId": result["order"].id}
