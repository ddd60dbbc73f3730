"""
Factory d'application pour les entrypoints (ex: ecoshop.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_middleware, register_force_https_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base et de sécurité (en-têtes, CSRF)
      - redirection HTTPS: ajoutée en dernier pour s'exécuter en premier
      - gestionnaires d'exceptions
      - tous les routers (API v1, health)
    """
    app = FastAPI(title="EcoShop API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    register_force_https_middleware(app)
    return app
