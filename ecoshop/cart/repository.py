"""
Panier persistant côté serveur (table 'cart_items', une ligne par (user_id, product_id)).
"""
from datetime import datetime, timedelta, timezone
from typing import List
import logging
from supabase import Client

logger = logging.getLogger(__name__)

# module ecoshop.cart.repository
def list_cart(client: Client, user_id: str) -> List[dict]:
    res = (
        client
        .table("cart_items")
        .select("product_id, quantity, updated_at, products(id, name, description, price, stock, seller_id)")
        .eq("user_id", user_id)
        .order("created_at")
        .execute()
    )
    return res.data or []

def upsert_item(client: Client, user_id: str, product_id: int, quantity: int) -> dict:
    """Fixe la quantité d'un produit dans le panier (remplace, n'additionne pas)."""
    res = (
        client
        .table("cart_items")
        .upsert(
            {
                "user_id": user_id,
                "product_id": product_id,
                "quantity": quantity,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="user_id,product_id",
        )
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else {"product_id": product_id, "quantity": quantity}

def remove_item(client: Client, user_id: str, product_id: int) -> bool:
    res = (
        client
        .table("cart_items")
        .delete()
        .eq("user_id", user_id)
        .eq("product_id", product_id)
        .execute()
    )
    return bool(res.data)

def clear_cart(client: Client, user_id: str) -> int:
    res = client.table("cart_items").delete().eq("user_id", user_id).execute()
    return len(res.data or [])

def delete_expired(client: Client, ttl_days: int) -> int:
    """Supprime les lignes non modifiées depuis ttl_days jours. Retour: nombre de lignes supprimées."""
    cutoff = (datetime.now(timezone.utc) - timedelta(days=ttl_days)).isoformat()
    res = client.table("cart_items").delete().lt("updated_at", cutoff).execute()
    deleted = len(res.data or [])
    logger.info("cart.delete_expired cutoff=%s deleted=%s", cutoff, deleted)
    return deleted
