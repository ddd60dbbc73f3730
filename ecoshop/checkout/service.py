"""
Cas d'usage 'checkout': orchestre validation du stock, tarification et session Stripe.

Ordre garanti: stock vérifié sur toutes les lignes -> tarification -> session Stripe.
Aucune écriture locale: la commande et la décrémentation du stock attendent la
confirmation de paiement (webhook, voir ecoshop.orders.service).
"""
import logging
from typing import Any, Dict, List

from supabase import Client

from ecoshop.catalogue import repository as products_repo
from ecoshop.config import BASE_URL, CHECKOUT_SUCCESS_PATH, CHECKOUT_CANCEL_PATH, SHIPPING_COUNTRIES
from ecoshop.payments.stripe_client import StripeGateway
from . import cart as cart_logic
from .metadata import make_metadata
from .pricing import PricedCart, price_lines
from .schemas import CheckoutRequest
from .stock import check_stock

logger = logging.getLogger(__name__)


def default_urls(base_url: str = BASE_URL) -> Dict[str, str]:
    base = base_url.rstrip("/")
    return {
        "success_url": f"{base}{CHECKOUT_SUCCESS_PATH}",
        "cancel_url": f"{base}{CHECKOUT_CANCEL_PATH}",
    }


def to_line_items(priced: PricedCart, currency: str) -> List[Dict[str, Any]]:
    """Construit les line_items Stripe (price_data) à partir des lignes tarifées."""
    line_items: List[Dict[str, Any]] = []
    for line in priced.lines:
        product_data: Dict[str, Any] = {"name": line.name}
        if line.description:
            product_data["description"] = line.description
        line_items.append({
            "quantity": line.quantity,
            "price_data": {
                "currency": currency,
                "unit_amount": line.unit_amount,
                "product_data": product_data,
            },
        })
    return line_items


class CheckoutService:
    def __init__(self, db: Client, stripe_gateway: StripeGateway, base_url: str = BASE_URL):
        self.db = db
        self.stripe = stripe_gateway
        self.base_url = base_url

    def price_request(self, request: CheckoutRequest) -> PricedCart:
        """Charge les produits, vérifie le stock puis tarifie (lecture seule)."""
        quantities = cart_logic.aggregate_quantities(request.items)
        products = products_repo.get_products_map(self.db, quantities.keys())
        check_stock(products, quantities)
        return price_lines(products, quantities)

    def create_checkout_session(self, *, user: Dict[str, Any], request: CheckoutRequest) -> Dict[str, Any]:
        """
        Crée une session de paiement pour l'utilisateur authentifié.
        Retour: {"session_id", "session_url", "amount_total"}
        Erreurs: ProductNotFound / InsufficientStock avant tout appel Stripe,
        PaymentProviderError si Stripe échoue.
        """
        priced = self.price_request(request)
        quantities = {line.product_id: line.quantity for line in priced.lines}

        urls = default_urls(self.base_url)
        success_url = str(request.success_url) if request.success_url else urls["success_url"]
        cancel_url = str(request.cancel_url) if request.cancel_url else urls["cancel_url"]

        user_id = str(user.get("id") or "")
        metadata = make_metadata(user_id, quantities, request.shipping_address)
        session = self.stripe.create_session(
            line_items=to_line_items(priced, self.stripe.currency),
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            customer_email=user.get("email"),
            collect_shipping_countries=None if request.shipping_address else SHIPPING_COUNTRIES,
        )
        logger.info(
            "checkout.session_created user_id=%s session_id=%s lines=%s amount=%s",
            user_id, session.get("id"), len(priced.lines), priced.total,
        )
        return {
            "session_id": session.get("id"),
            "session_url": session.get("url"),
            "amount_total": priced.total,
        }

