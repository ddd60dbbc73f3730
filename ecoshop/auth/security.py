"""
Authentification: résolution de l'utilisateur à partir du token Supabase.
- Priorité à l'en-tête Authorization: Bearer <token>, fallback cookie sb_access
- Le token est vérifié par Supabase Auth (auth.get_user), jamais décodé localement
"""
import logging
from typing import Any, Dict, Optional
from fastapi import Depends, Request

from ecoshop.config import SESSION_COOKIE_NAME, SELLER_ROLES
from ecoshop.errors import ForbiddenError, UnauthorizedError

logger = logging.getLogger(__name__)

COOKIE_NAME = SESSION_COOKIE_NAME


def determine_role(metadata: Optional[Dict[str, Any]]) -> str:
    role_lower = str((metadata or {}).get("role", "")).lower()
    if role_lower in ("admin", "seller"):
        return role_lower
    return "user"


def extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME)


def get_user_from_token(client, access_token: str) -> Dict[str, Any]:
    """Normalise l'utilisateur issu de supabase.auth.get_user(access_token): {id, email, metadata, role, token}."""
    res = client.auth.get_user(access_token)
    user = getattr(res, "user", None)
    if not user:
        return {}
    metadata = getattr(user, "user_metadata", None) or {}
    return {
        "id": getattr(user, "id", None),
        "email": getattr(user, "email", None),
        "metadata": metadata,
        "role": determine_role(metadata),
        "token": access_token,
    }


def get_current_user(request: Request) -> Dict[str, Any]:
    token = extract_token(request)
    if not token:
        raise UnauthorizedError()

    client = getattr(request.app.state, "supabase", None)
    if client is None:
        logger.error("Supabase non configuré: authentification impossible")
        raise UnauthorizedError("Service d'authentification indisponible")
    try:
        user = get_user_from_token(client, token)
    except Exception:
        logger.info("auth.get_user rejected token")
        raise UnauthorizedError("Session expirée, veuillez vous connecter")
    if not user.get("id"):
        raise UnauthorizedError("Session expirée, veuillez vous connecter")
    return user


def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


def require_seller(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") not in SELLER_ROLES:
        raise ForbiddenError()
    return user
