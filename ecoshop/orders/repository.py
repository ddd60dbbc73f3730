from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging
from postgrest.exceptions import APIError
from supabase import Client

logger = logging.getLogger(__name__)

ORDER_SELECT = "*, order_items(*)"

# module ecoshop.orders.repository
def create_order_from_checkout(client: Client, params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Appelle la fonction SQL create_order_from_checkout (une transaction):
    insertion orders + order_items, décrémentation du stock.
    - Idempotent sur p_session_id: un rejeu renvoie la commande existante avec created=False.
    Retour: {"order": <ligne avec order_items>, "created": bool, "oversold": [product_id, ...]}
    - Violation d'unicité (création concurrente de la même session): la commande existante
      est relue et renvoyée avec created=False.
    """
    try:
        res = client.rpc("create_order_from_checkout", params).execute()
    except APIError as e:
        code = getattr(e, "code", None)
        if code is None and e.args and isinstance(e.args[0], dict):
            code = e.args[0].get("code")
        if code != "23505":
            raise
        existing = find_by_session(client, params.get("p_session_id"))
        if not existing:
            raise
        logger.info("orders.create concurrent session_id=%s order_id=%s", params.get("p_session_id"), existing.get("id"))
        return {"order": existing, "created": False, "oversold": []}
    data = res.data
    if isinstance(data, list):
        data = data[0] if data else None
    if not data or not data.get("order"):
        raise RuntimeError("create_order_from_checkout n'a retourné aucune commande")
    return data

def get_order(client: Client, order_id: int) -> Optional[dict]:
    res = (
        client
        .table("orders")
        .select(ORDER_SELECT)
        .eq("id", order_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def list_user_orders(client: Client, user_id: str, limit: int = 50) -> List[dict]:
    """Commandes d'un utilisateur, les plus récentes d'abord."""
    res = (
        client
        .table("orders")
        .select(ORDER_SELECT)
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return res.data or []

def list_seller_orders(client: Client, seller_id: str, limit: int = 50) -> List[dict]:
    """Commandes contenant au moins une ligne du vendeur (jointure filtrée order_items!inner)."""
    res = (
        client
        .table("orders")
        .select("*, order_items!inner(*)")
        .eq("order_items.seller_id", seller_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return res.data or []

def find_by_session(client: Client, session_id: str) -> Optional[dict]:
    res = (
        client
        .table("orders")
        .select(ORDER_SELECT)
        .eq("stripe_checkout_session_id", session_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def find_by_payment_intent(client: Client, payment_intent_id: str) -> Optional[dict]:
    res = (
        client
        .table("orders")
        .select(ORDER_SELECT)
        .eq("stripe_payment_intent_id", payment_intent_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def update_status(client: Client, order_id: int, status: str, expected_current: Optional[str] = None) -> bool:
    """
    Met à jour le statut.
    - expected_current: garde optimiste (eq status), évite d'écraser une transition concurrente.
    Retour: True si une ligne a été modifiée.
    """
    query = (
        client
        .table("orders")
        .update({"status": status, "updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", order_id)
    )
    if expected_current is not None:
        query = query.eq("status", expected_current)
    res = query.execute()
    return bool(res.data)
