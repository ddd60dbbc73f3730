"""
Cas d'usage 'commandes': création depuis une session Stripe confirmée, statuts, lecture.

Points clés:
- La commande n'existe qu'après confirmation Stripe (webhook ou /confirm).
- Lignes = instantané (nom, prix en centimes) pris sur la fiche produit à la création.
- Création + décrémentation du stock: une transaction SQL (create_order_from_checkout),
  idempotente sur l'id de session.
- order/created est publié avec un id d'événement déterministe: un webhook rejoué
  ne produit pas de second envoi.
"""
import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from ecoshop.catalogue import repository as products_repo
from ecoshop.checkout.metadata import extract_metadata_from_session
from ecoshop.checkout.pricing import to_minor_units
from ecoshop.errors import ConflictError, ForbiddenError, InvalidStatusTransition, NotFoundError, ValidationError
from ecoshop.payments.stripe_client import StripeGateway
from . import repository as orders_repo
from .models import Order, OrderStatus, ensure_transition

logger = logging.getLogger(__name__)

ORDER_CREATED = "order/created"
PAID_STATUSES = ("paid", "no_payment_required")


def _session_shipping(session: Dict[str, Any]) -> Any:
    # Adresse collectée par Stripe (selon la version d'API)
    collected = (session.get("collected_information") or {}).get("shipping_details")
    return collected or session.get("shipping_details")


def build_snapshot(products_by_id: Dict[int, Dict[str, Any]], items: List[Dict[str, int]]) -> List[Dict[str, Any]]:
    """
    Construit les lignes de commande figées (product_name, unit_amount, subtotal).
    Les doublons de la métadonnée sont cumulés comme au checkout.
    """
    quantities: Dict[int, int] = {}
    for it in items:
        quantities[it["productId"]] = quantities.get(it["productId"], 0) + it["quantity"]

    lines: List[Dict[str, Any]] = []
    for product_id, qty in quantities.items():
        product = products_by_id.get(product_id)
        if product is None:
            # Produit supprimé entre le paiement et le webhook: la ligne est gardée pour l'historique
            logger.warning("orders.snapshot product missing product_id=%s", product_id)
            name, unit_amount, seller_id = f"Produit {product_id}", 0, None
        else:
            name = product.get("name") or "Article"
            unit_amount = to_minor_units(product.get("price"))
            seller_id = product.get("seller_id")
        lines.append({
            "product_id": product_id,
            "product_name": name,
            "quantity": qty,
            "unit_amount": unit_amount,
            "subtotal": unit_amount * qty,
            "seller_id": str(seller_id) if seller_id else None,
        })
    return lines


def build_seller_data(order: Order) -> List[Dict[str, Any]]:
    """Regroupe les lignes par vendeur pour les notifications (une entrée par vendeur)."""
    by_seller: Dict[str, Dict[str, Any]] = {}
    for item in order.items:
        if not item.seller_id:
            continue
        entry = by_seller.setdefault(item.seller_id, {
            "sellerId": item.seller_id,
            "orderId": order.id,
            "customerName": order.customer_name,
            "shippingAddress": order.shipping_address,
            "currency": order.currency,
            "items": [],
            "subtotal": 0,
        })
        entry["items"].append(item.model_dump(mode="json"))
        entry["subtotal"] += item.subtotal
    return list(by_seller.values())


class OrderService:
    def __init__(self, db: Client, event_bus, stripe_gateway: Optional[StripeGateway] = None):
        self.db = db
        self.events = event_bus
        self.stripe = stripe_gateway

    # --- création ---
    async def fulfill_checkout_session(self, session: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crée la commande d'une session Checkout terminée (idempotent).
        Retour: {"order": Order, "created": bool, "oversold": [product_id, ...]}
        Erreurs: ValidationError si les métadonnées sont inexploitables.
        """
        session_id = session.get("id")
        user_id, items, shipping_address = extract_metadata_from_session(session)
        if not user_id:
            raise ValidationError("user_id manquant dans les métadonnées de session")
        if not items:
            raise ValidationError("items manquants dans les métadonnées de session")

        products = products_repo.get_products_map(self.db, [it["productId"] for it in items])
        lines = build_snapshot(products, items)
        amount = sum(line["subtotal"] for line in lines)
        if session.get("amount_total") is not None and int(session["amount_total"]) != amount:
            logger.warning(
                "orders.amount_mismatch session_id=%s paid=%s snapshot=%s",
                session_id, session.get("amount_total"), amount,
            )
            amount = int(session["amount_total"])

        status = OrderStatus.PROCESSING if session.get("payment_status") in PAID_STATUSES else OrderStatus.PENDING
        details = session.get("customer_details") or {}
        params = {
            "p_user_id": user_id,
            "p_session_id": session_id,
            "p_payment_intent_id": session.get("payment_intent"),
            "p_amount": amount,
            "p_currency": (session.get("currency") or "usd").lower(),
            "p_status": status.value,
            "p_customer_email": details.get("email") or session.get("customer_email"),
            "p_customer_name": details.get("name"),
            "p_shipping_address": shipping_address or _session_shipping(session),
            "p_items": lines,
        }
        result = orders_repo.create_order_from_checkout(self.db, params)
        order = Order.from_row(result["order"])
        created = bool(result.get("created"))
        oversold = [int(pid) for pid in (result.get("oversold") or [])]
        if oversold:
            logger.warning("orders.oversold order_id=%s product_ids=%s", order.id, oversold)

        await self.events.publish(
            ORDER_CREATED,
            {"orderData": order.to_event_payload(), "sellerData": build_seller_data(order)},
            event_id=f"{ORDER_CREATED}:{order.id}",
        )
        logger.info(
            "orders.fulfilled order_id=%s session_id=%s created=%s amount=%s",
            order.id, session_id, created, order.amount,
        )
        return {"order": order, "created": created, "oversold": oversold}

    async def confirm_session(self, session_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Alternative sans webhook: relit la session Stripe et crée la commande si payée.
        - 403 si la session appartient à un autre utilisateur
        - 400 si le paiement n'est pas confirmé
        """
        if self.stripe is None:
            raise ValidationError("Paiement non configuré")
        session = self.stripe.get_session(session_id)
        owner, _, _ = extract_metadata_from_session(session)
        if not owner or str(owner) != str(user.get("id")):
            raise ForbiddenError("Session de paiement d'un autre utilisateur")
        if session.get("payment_status") not in PAID_STATUSES:
            raise ValidationError("Paiement non confirmé")
        return await self.fulfill_checkout_session(session)

    # --- statuts ---
    def _apply_transition(self, row: Dict[str, Any], target: OrderStatus) -> Order:
        order = Order.from_row(row)
        if not ensure_transition(order.status, target):
            return order
        if not orders_repo.update_status(self.db, order.id, target.value, expected_current=order.status.value):
            raise ConflictError("Le statut de la commande a changé entre-temps")
        logger.info("orders.status order_id=%s %s->%s", order.id, order.status.value, target.value)
        return order.model_copy(update={"status": target})

    def update_status(self, order_id: int, target: str, user: Dict[str, Any]) -> Order:
        """Changement manuel (vendeur/admin); transitions contrôlées, 409 sinon."""
        try:
            target_status = OrderStatus(target)
        except ValueError:
            raise ValidationError(f"Statut inconnu: {target}")
        row = orders_repo.get_order(self.db, order_id)
        if not row:
            raise NotFoundError("Commande introuvable")
        if user.get("role") != "admin":
            sellers = {str(it.get("seller_id")) for it in row.get("order_items") or []}
            if str(user.get("id")) not in sellers:
                raise ForbiddenError("Commande d'un autre vendeur")
        return self._apply_transition(row, target_status)

    def _mark(self, row: Optional[Dict[str, Any]], target: OrderStatus, ref: str) -> Optional[Order]:
        # Webhooks: commande inconnue ou transition interdite -> ignoré et loggé (pas de rejeu Stripe)
        if not row:
            logger.info("orders.webhook no order for %s", ref)
            return None
        try:
            return self._apply_transition(row, target)
        except InvalidStatusTransition as e:
            logger.warning("orders.webhook ignored %s: %s", ref, e.message)
            return Order.from_row(row)

    def mark_by_payment_intent(self, payment_intent_id: str, target: OrderStatus) -> Optional[Order]:
        row = orders_repo.find_by_payment_intent(self.db, payment_intent_id) if payment_intent_id else None
        return self._mark(row, target, f"payment_intent={payment_intent_id}")

    def mark_by_session(self, session_id: str, target: OrderStatus) -> Optional[Order]:
        row = orders_repo.find_by_session(self.db, session_id) if session_id else None
        return self._mark(row, target, f"session={session_id}")

    async def handle_stripe_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Route un événement webhook vérifié vers le cas d'usage correspondant.
        Types non gérés: {"received": True} sans effet.
        """
        event_type = event.get("type")
        obj = ((event.get("data") or {}).get("object")) or {}
        logger.info("stripe.webhook type=%s id=%s", event_type, event.get("id"))

        if event_type == "checkout.session.completed":
            result = await self.fulfill_checkout_session(obj)
            return {"received": True, "orderId": result["order"].id, "created": result["created"]}
        if event_type == "checkout.session.async_payment_succeeded":
            self.mark_by_session(obj.get("id"), OrderStatus.PROCESSING)
        elif event_type == "checkout.session.async_payment_failed":
            self.mark_by_session(obj.get("id"), OrderStatus.FAILED)
        elif event_type == "payment_intent.succeeded":
            self.mark_by_payment_intent(obj.get("id"), OrderStatus.PROCESSING)
        elif event_type == "payment_intent.payment_failed":
            self.mark_by_payment_intent(obj.get("id"), OrderStatus.FAILED)
        elif event_type == "charge.refunded":
            self.mark_by_payment_intent(obj.get("payment_intent"), OrderStatus.REFUNDED)
        else:
            logger.info("stripe.webhook unhandled type=%s", event_type)
        return {"received": True}

    # --- lecture ---
    def list_orders(self, user: Dict[str, Any]) -> List[Order]:
        return [Order.from_row(r) for r in orders_repo.list_user_orders(self.db, str(user.get("id")))]

    def list_seller_orders(self, user: Dict[str, Any]) -> List[Order]:
        return [Order.from_row(r) for r in orders_repo.list_seller_orders(self.db, str(user.get("id")))]

    def get_order(self, order_id: int, user: Dict[str, Any]) -> Order:
        """Commande de l'utilisateur courant (admin: toutes). 404 sinon, sans révéler l'existence."""
        row = orders_repo.get_order(self.db, order_id)
        if not row or (user.get("role") != "admin" and str(row.get("user_id")) != str(user.get("id"))):
            raise NotFoundError("Commande introuvable")
        return Order.from_row(row)
