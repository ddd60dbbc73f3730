from typing import Dict, Any
from fastapi import Request, Response
import os
import time
import hashlib

from ecoshop.auth.security import extract_token
from ecoshop.errors import RateLimitError

# Au-delà, les clés dont la fenêtre est écoulée sont purgées du store mémoire
LOCAL_STORE_MAX_KEYS = 10000


def _client_key(req: Request) -> str:
    # Priorité: token de session (hashé) puis IP du client
    # (request.client est déjà résolu par ProxyHeadersMiddleware pour les proxys de confiance)
    token = extract_token(req)
    path = req.url.path
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = req.client.host if req.client else "anonymous"
    return f"ip:{ip}:{path}"


def _evict_expired(store: Dict[str, Any], now: float) -> None:
    expired = [k for k, (window, hits) in store.items() if not hits or now - hits[-1] >= window]
    for k in expired:
        del store[k]


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _client_key(request)
            store = getattr(request.app.state, "_rl_store", {})
            _, previous = store.get(key, (seconds, []))
            hits = [t for t in previous if now - t < seconds]
            if len(hits) >= times:
                raise RateLimitError()
            hits.append(now)
            store[key] = (seconds, hits)
            if len(store) > LOCAL_STORE_MAX_KEYS:
                _evict_expired(store, now)
            request.app.state._rl_store = store
            return

        # Respecter le flag global
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return _client_key(req)

        return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)

    limiter_ready = False
    backend = None
    try:
        from fastapi_limiter import FastAPILimiter
        limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
        backend = "redis" if limiter_ready else None
    except ImportError:
        limiter_ready = False

    info: Dict[str, Any] = {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": backend,
        "local_fallback": os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1",
    }

    if backend == "redis":
        from urllib.parse import urlparse
        redis_url = os.getenv("RATE_LIMIT_REDIS_URL") or os.getenv("REDIS_URL")
        if redis_url:
            p = urlparse(redis_url)
            info["redis"] = {
                "scheme": p.scheme,
                "host": p.hostname,
                "port": p.port,
            }

    return info
