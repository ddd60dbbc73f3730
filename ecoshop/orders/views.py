# module ecoshop.orders.views
"""Endpoints commandes.
- GET  /api/v1/orders: commandes de l'utilisateur connecté
- GET  /api/v1/orders/seller: commandes contenant des produits du vendeur
- GET  /api/v1/orders/{id}: détail (propriétaire ou admin)
- PATCH /api/v1/orders/{id}/status: transition manuelle (vendeur concerné ou admin), 409 si interdite
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ecoshop.auth.security import require_seller, require_user
from ecoshop.orders.service import OrderService

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


class StatusUpdate(BaseModel):
    status: str


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


@router.get("")
def list_orders(user: Dict[str, Any] = Depends(require_user), service: OrderService = Depends(get_order_service)):
    return {"orders": [o.model_dump(mode="json") for o in service.list_orders(user)]}


@router.get("/seller")
def list_seller_orders(user: Dict[str, Any] = Depends(require_seller), service: OrderService = Depends(get_order_service)):
    return {"orders": [o.model_dump(mode="json") for o in service.list_seller_orders(user)]}


@router.get("/{order_id}")
def get_order(order_id: int, user: Dict[str, Any] = Depends(require_user), service: OrderService = Depends(get_order_service)):
    return {"order": service.get_order(order_id, user).model_dump(mode="json")}


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: int,
    body: StatusUpdate,
    user: Dict[str, Any] = Depends(require_seller),
    service: OrderService = Depends(get_order_service),
):
    order = service.update_status(order_id, body.status, user)
    return {"order": order.model_dump(mode="json")}
