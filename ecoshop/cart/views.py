# module ecoshop.cart.views
"""Endpoints du panier persistant (utilisateur connecté).
Les montants renvoyés sont indicatifs: le checkout recalcule tout depuis les fiches produit.
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from supabase import Client

from ecoshop.auth.security import require_user
from ecoshop.cart import repository as cart_repo
from ecoshop.catalogue import repository as products_repo
from ecoshop.checkout.pricing import to_minor_units
from ecoshop.checkout.schemas import CartLineRequest
from ecoshop.checkout.stock import check_stock
from ecoshop.infra.supabase_client import get_service_supabase

router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


def _serialize(rows: List[dict]) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = []
    for row in rows:
        product = row.get("products")
        if not product:
            # Produit supprimé depuis l'ajout au panier
            continue
        unit_amount = to_minor_units(product.get("price"))
        items.append({
            "productId": row["product_id"],
            "quantity": row["quantity"],
            "name": product.get("name"),
            "unitAmount": unit_amount,
            "subtotal": unit_amount * row["quantity"],
            "stock": product.get("stock"),
        })
    return {"items": items, "total": sum(it["subtotal"] for it in items)}


@router.get("")
def get_cart(user: Dict[str, Any] = Depends(require_user), db: Client = Depends(get_service_supabase)):
    return _serialize(cart_repo.list_cart(db, str(user["id"])))


@router.put("/items")
def put_cart_item(
    line: CartLineRequest,
    user: Dict[str, Any] = Depends(require_user),
    db: Client = Depends(get_service_supabase),
):
    """Fixe la quantité d'un produit; 400 PRODUCT_NOT_FOUND / INSUFFICIENT_STOCK comme au checkout."""
    products = products_repo.get_products_map(db, [line.product_id])
    check_stock(products, {line.product_id: line.quantity})
    cart_repo.upsert_item(db, str(user["id"]), line.product_id, line.quantity)
    return _serialize(cart_repo.list_cart(db, str(user["id"])))


@router.delete("/items/{product_id}")
def delete_cart_item(product_id: int, user: Dict[str, Any] = Depends(require_user), db: Client = Depends(get_service_supabase)):
    cart_repo.remove_item(db, str(user["id"]), product_id)
    return _serialize(cart_repo.list_cart(db, str(user["id"])))


@router.delete("")
def clear_cart(user: Dict[str, Any] = Depends(require_user), db: Client = Depends(get_service_supabase)):
    return {"deleted": cart_repo.clear_cart(db, str(user["id"]))}
