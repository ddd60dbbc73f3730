"""
Accès aux données produits (table 'products').
"""
from typing import Any, Dict, Iterable, List, Optional
import logging
from supabase import Client

logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, name, description, price, stock, seller_id"

# module ecoshop.catalogue.repository
def fetch_products_by_ids(client: Client, ids: Iterable[int]) -> List[dict]:
    """
    Récupère les produits par leurs IDs en une seule requête.
    - Retourne [] si ids vide.
    - Les erreurs PostgREST remontent à l'appelant (le checkout ne doit pas
      conclure à un produit introuvable sur une panne de base).
    """
    ids = [int(i) for i in ids]
    if not ids:
        return []
    res = (
        client
        .table("products")
        .select(PRODUCT_COLUMNS)
        .in_("id", ids)
        .execute()
    )
    return res.data or []

def get_products_map(client: Client, ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
    """
    Retourne un dict {id: produit} à partir d'une liste d'IDs.
    """
    return {int(p["id"]): p for p in fetch_products_by_ids(client, ids)}

def get_product(client: Client, product_id: int) -> Optional[dict]:
    rows = fetch_products_by_ids(client, [product_id])
    return rows[0] if rows else None

def insert_product_image(client: Client, *, product_id: int, url: str) -> Optional[dict]:
    try:
        res = (
            client
            .table("product_images")
            .insert({"product_id": product_id, "url": url})
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("catalogue.repository.insert_product_image failed product_id=%s", product_id)
        return None

def set_optimized_image_url(client: Client, *, image_id: int, optimized_url: str) -> bool:
    """Enregistre l'URL optimisée; rejouer avec la même valeur ne change rien (idempotent)."""
    res = (
        client
        .table("product_images")
        .update({"optimized_url": optimized_url})
        .eq("id", image_id)
        .execute()
    )
    return bool(res.data)
