"""
Registre central des routers.
- API v1: stripe (checkout, webhook), commandes, panier, catalogue (public et vendeur), devises
- Health: health_router
"""
from fastapi import FastAPI
from ecoshop.payments import views as payments_views
from ecoshop.orders import views as orders_views
from ecoshop.cart import views as cart_views
from ecoshop.catalogue.views import router as products_router, seller_router as seller_products_router
from ecoshop.currency.views import router as currency_router
from ecoshop.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(payments_views.router)
    app.include_router(orders_views.router)
    app.include_router(cart_views.router)
    app.include_router(products_router)
    app.include_router(seller_products_router)
    app.include_router(currency_router)
    # Health & monitoring
    app.include_router(health_router)
