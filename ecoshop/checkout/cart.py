"""
Logique panier pure (pas de Stripe, pas de DB): validation du payload et agrégation.
"""
from typing import Any, Dict, List
from pydantic import ValidationError as PydanticValidationError

from ecoshop.errors import ValidationError
from .schemas import CartLineRequest, CheckoutRequest

# module ecoshop.checkout.cart
def parse_checkout_request(body: Any) -> CheckoutRequest:
    """
    Valide le corps JSON du checkout.
    - Panier vide, productId/quantity non entiers ou <= 0, URL invalide: ValidationError
      avec le détail pydantic (champ, message) dans `details`.
    """
    if not isinstance(body, dict):
        raise ValidationError("Corps JSON attendu")
    try:
        return CheckoutRequest.model_validate(body)
    except PydanticValidationError as e:
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in e.errors()
        ]
        raise ValidationError("Validation échouée", details=details) from e

def aggregate_quantities(items: List[CartLineRequest]) -> Dict[int, int]:
    """
    Agrège les lignes [{productId, quantity}, ...] en {product_id: total_quantity}.
    - Conserve l'ordre de première apparition des produits.
    - Les doublons sont sommés: le stock est vérifié sur la quantité cumulée.
    """
    quantities: Dict[int, int] = {}
    for it in items:
        quantities[it.product_id] = quantities.get(it.product_id, 0) + it.quantity
    if not quantities:
        raise ValidationError("Au moins un article est requis")
    return quantities
