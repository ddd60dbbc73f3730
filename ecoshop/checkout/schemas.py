from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class CartLineRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId", gt=0, strict=True)
    quantity: int = Field(gt=0, strict=True)


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[CartLineRequest] = Field(min_length=1)
    success_url: Optional[HttpUrl] = Field(default=None, alias="successUrl")
    cancel_url: Optional[HttpUrl] = Field(default=None, alias="cancelUrl")
    # Adresse libre: transmise telle quelle dans les métadonnées Stripe
    shipping_address: Optional[Any] = Field(default=None, alias="shippingAddress")
