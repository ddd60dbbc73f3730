"""
Instance FastAPI de l'application.
Toute la construction (lifespan, middlewares, handlers, routers) est dans ecoshop.app_setup.factory.
"""
from ecoshop.app_setup.factory import create_app

app = create_app()
