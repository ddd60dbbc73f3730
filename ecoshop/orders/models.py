# module ecoshop.orders.models
"""Modèle des commandes.
- OrderStatus et table des transitions autorisées (pending -> processing -> completed|failed|refunded).
- Order/OrderItem: instantané immuable des lignes au moment du paiement (nom et prix copiés),
  les montants sont en centimes.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ecoshop.errors import InvalidStatusTransition


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.FAILED},
    OrderStatus.PROCESSING: {OrderStatus.COMPLETED, OrderStatus.FAILED, OrderStatus.REFUNDED},
    OrderStatus.COMPLETED: {OrderStatus.REFUNDED},
    OrderStatus.FAILED: set(),
    OrderStatus.REFUNDED: set(),
}


def ensure_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """
    Valide une transition de statut.
    Retour: False si le statut est déjà celui demandé (no-op idempotent), True sinon.
    Lève InvalidStatusTransition si la transition n'est pas dans la table.
    """
    current, target = OrderStatus(current), OrderStatus(target)
    if current == target:
        return False
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(current.value, target.value)
    return True


class OrderItem(BaseModel):
    model_config = {"frozen": True}

    product_id: int
    product_name: str
    quantity: int = Field(gt=0)
    unit_amount: int = Field(ge=0)
    subtotal: int = Field(ge=0)
    seller_id: Optional[str] = None


class Order(BaseModel):
    id: Optional[int] = None
    user_id: str
    items: List[OrderItem] = Field(default_factory=list)
    amount: int
    currency: str = "usd"
    status: OrderStatus = OrderStatus.PENDING
    stripe_checkout_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    shipping_address: Optional[Any] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        """Construit une commande depuis une ligne 'orders' avec jointure order_items."""
        data = dict(row)
        data["items"] = data.pop("order_items", None) or data.get("items") or []
        return cls.model_validate(data)

    def to_event_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
