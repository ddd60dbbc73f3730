"""
Calcul des montants en unités mineures (centimes).

Le prix unitaire vient toujours de l'enregistrement produit, jamais du client.
L'arrondi se fait par ligne (prix -> centimes), jamais sur le total.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, List

from ecoshop.errors import ValidationError

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    name: str
    description: str
    unit_amount: int
    quantity: int
    seller_id: Any = None

    @property
    def subtotal(self) -> int:
        return self.unit_amount * self.quantity


@dataclass(frozen=True)
class PricedCart:
    lines: List[PricedLine] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(line.subtotal for line in self.lines)


def to_minor_units(price: Any) -> int:
    """
    Convertit un prix en unités majeures (str|int|float|Decimal) en centimes.
    - Passe par str() pour éviter la représentation binaire des floats (19.995 -> 2000).
    - Arrondi au centime le plus proche, demi vers le haut.
    """
    try:
        amount = Decimal(str(price))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Prix invalide: {price!r}")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"Prix invalide: {price!r}")
    return int((amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def price_lines(products_by_id: Dict[int, Dict[str, Any]], quantities: Dict[int, int]) -> PricedCart:
    """Construit les lignes tarifées dans l'ordre des quantités (fonction pure)."""
    lines: List[PricedLine] = []
    for product_id, qty in quantities.items():
        product = products_by_id[product_id]
        lines.append(PricedLine(
            product_id=product_id,
            name=product.get("name") or "Article",
            description=product.get("description") or "",
            unit_amount=to_minor_units(product.get("price")),
            quantity=qty,
            seller_id=product.get("seller_id"),
        ))
    return PricedCart(lines=lines)
