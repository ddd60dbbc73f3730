# module ecoshop.catalogue.views
"""Endpoints catalogue.
- GET  /api/v1/products/{id}: fiche produit publique (prix aussi en centimes)
- POST /api/v1/seller/products/{id}/images: enregistre une image et déclenche son optimisation
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, HttpUrl
from supabase import Client

from ecoshop.auth.security import require_seller
from ecoshop.catalogue import images
from ecoshop.catalogue import repository as products_repo
from ecoshop.checkout.pricing import to_minor_units
from ecoshop.errors import ForbiddenError, InternalError, NotFoundError, ValidationError
from ecoshop.infra.supabase_client import get_service_supabase

logger = logging.getLogger(__name__)

IMAGE_UPLOADED = "product/image-uploaded"

router = APIRouter(prefix="/api/v1/products", tags=["Catalogue API"])
seller_router = APIRouter(prefix="/api/v1/seller/products", tags=["Seller API"])


class ImageUpload(BaseModel):
    url: HttpUrl


@router.get("/{product_id}")
def get_product(product_id: int, db: Client = Depends(get_service_supabase)):
    product = products_repo.get_product(db, product_id)
    if not product:
        raise NotFoundError("Produit introuvable")
    return {"product": {**product, "unitAmount": to_minor_units(product.get("price"))}}


@seller_router.post("/{product_id}/images", status_code=201)
async def add_product_image(
    product_id: int,
    body: ImageUpload,
    request: Request,
    user: Dict[str, Any] = Depends(require_seller),
    db: Client = Depends(get_service_supabase),
):
    """
    Enregistre l'URL d'une image déjà déposée et publie product/image-uploaded.
    - 404 si le produit n'existe pas, 403 si le vendeur n'en est pas propriétaire (admin: tous)
    - 400 si l'URL n'est pas servie par un hôte autorisé (Storage Supabase)
    """
    product = products_repo.get_product(db, product_id)
    if not product:
        raise NotFoundError("Produit introuvable")
    if user.get("role") != "admin" and str(product.get("seller_id")) != str(user.get("id")):
        raise ForbiddenError("Produit d'un autre vendeur")
    if not images.is_allowed_url(str(body.url)):
        raise ValidationError("URL d'image non autorisée", details=[{"field": "url", "message": "hôte non autorisé"}])

    image = products_repo.insert_product_image(db, product_id=product_id, url=str(body.url))
    if image is None:
        raise InternalError("Enregistrement de l'image impossible")

    await request.app.state.event_bus.publish(IMAGE_UPLOADED, {
        "imageId": image.get("id"),
        "imageUrl": str(body.url),
        "productId": product_id,
    })
    return JSONResponse(status_code=201, content={"image": image})
