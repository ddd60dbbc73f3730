"""
Clients Supabase.

Les clients sont construits une seule fois par le lifespan (ecoshop.app_setup.lifespan)
et rangés dans app.state; les vues les obtiennent via les dépendances ci-dessous.
"""
from typing import Optional
from fastapi import Request
from supabase import create_client, Client
from ecoshop.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY


def create_anon_client() -> Client:
    if not SUPABASE_URL or not SUPABASE_ANON:
        raise RuntimeError("SUPABASE_URL/SUPABASE_ANON_KEY manquants")
    return create_client(SUPABASE_URL, SUPABASE_ANON)


def create_service_client() -> Client:
    """Client service-role (bypass RLS): lectures de stock, écritures webhook, jobs."""
    if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour le client service")
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)


def get_anon_supabase(request: Request) -> Client:
    return request.app.state.supabase


def get_service_supabase(request: Request) -> Client:
    return request.app.state.service_supabase


def try_create(factory) -> Optional[Client]:
    """Construit un client sans faire échouer le démarrage (config absente en dev/tests)."""
    try:
        return factory()
    except Exception:
        return None
