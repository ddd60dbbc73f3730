from typing import Any, Dict
from ecoshop.errors import InsufficientStock, ProductNotFound


def check_stock(products_by_id: Dict[int, Dict[str, Any]], quantities: Dict[int, int]) -> None:
    """
    Vérifie chaque quantité demandée contre le stock persistant.
    - Produit absent: ProductNotFound; quantité > stock: InsufficientStock.
    - Lecture seule; échoue à la première ligne invalide, aucune validation partielle.
    """
    for product_id, qty in quantities.items():
        product = products_by_id.get(product_id)
        if not product:
            raise ProductNotFound(product_id)
        available = int(product.get("stock") or 0)
        if qty > available:
            raise InsufficientStock(
                product_id=product_id,
                product_name=product.get("name") or "",
                available=available,
                requested=qty,
            )
