from typing import Any, Dict
from urllib.parse import urlparse
import socket

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ecoshop.config import SUPABASE_URL
from ecoshop.events.bus import DEAD_LETTER_STREAM
from ecoshop.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

CHECKED_TABLES = ["products", "orders", "order_items", "cart_items"]


@router.get("")
def health_root():
    return {"ok": True}


def _check_table(client, name: str) -> Dict[str, Any]:
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}


@router.get("/supabase")
def health_supabase(request: Request):
    parsed = urlparse(SUPABASE_URL) if SUPABASE_URL else None
    hostname = parsed.hostname if parsed else None
    dns_ok = None
    dns_error = None
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            dns_ok = True
        except OSError as e:
            dns_ok = False
            dns_error = str(e)

    info: Dict[str, Any] = {
        "supabase_url": SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    client = getattr(request.app.state, "service_supabase", None)
    if client is None:
        info["error"] = "client Supabase non configuré"
        return JSONResponse(info)
    for t in CHECKED_TABLES:
        info["tables"][t] = _check_table(client, t)
    info["connect_ok"] = all(t["ok"] for t in info["tables"].values())
    return JSONResponse(info)


@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return JSONResponse(rate_limit_health_info(request))


@router.get("/events")
async def health_events(request: Request):
    """Connexion Redis du bus et taille de la file des événements en échec définitif."""
    redis = getattr(request.app.state, "redis", None)
    info: Dict[str, Any] = {"redis_ok": False, "dead_letter": None, "error": None}
    if redis is None:
        info["error"] = "Redis non configuré"
        return JSONResponse(info)
    try:
        info["redis_ok"] = bool(await redis.ping())
        info["dead_letter"] = await redis.xlen(DEAD_LETTER_STREAM)
    except Exception as e:
        info["error"] = str(e)
    return JSONResponse(info)
