"""
Sérialisation/désérialisation des métadonnées Stripe (user_id, items, shipping_address).

Stripe limite les métadonnées à 50 clés de 500 caractères: une valeur plus longue est
découpée en <clé>_0, <clé>_1, ... avec <clé>_parts = nombre de morceaux.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

from ecoshop.errors import ValidationError

_MAX_VALUE_LEN = 500
_MAX_KEYS = 50


def _put(metadata: Dict[str, str], key: str, value: str) -> None:
    if len(value) <= _MAX_VALUE_LEN:
        metadata[key] = value
        return
    chunks = [value[i:i + _MAX_VALUE_LEN] for i in range(0, len(value), _MAX_VALUE_LEN)]
    for index, chunk in enumerate(chunks):
        metadata[f"{key}_{index}"] = chunk
    metadata[f"{key}_parts"] = str(len(chunks))


def _get(meta: Dict[str, Any], key: str) -> Optional[str]:
    if meta.get(key):
        return meta[key]
    try:
        parts = int(meta.get(f"{key}_parts") or 0)
    except (TypeError, ValueError):
        return None
    if parts <= 0:
        return None
    return "".join(meta.get(f"{key}_{i}") or "" for i in range(parts))

# module ecoshop.checkout.metadata
def make_metadata(user_id: str, quantities: Dict[int, int], shipping_address: Any = None) -> Dict[str, str]:
    """
    Sérialise les métadonnées Stripe associées à la session.
    - user_id: propriétaire du panier.
    - items: JSON compact [{"productId": <int>, "quantity": <int>}] des lignes demandées.
    - shipping_address: JSON de l'adresse libre, seulement si fournie.
    Erreurs: ValidationError si le tout dépasse 50 clés Stripe.
    """
    items = [{"productId": pid, "quantity": qty} for pid, qty in quantities.items()]
    metadata: Dict[str, str] = {"user_id": str(user_id)}
    _put(metadata, "items", json.dumps(items, separators=(",", ":")))
    if shipping_address:
        _put(metadata, "shipping_address", json.dumps(shipping_address, separators=(",", ":")))
    if len(metadata) > _MAX_KEYS:
        raise ValidationError("Panier trop volumineux pour les métadonnées de paiement")
    return metadata

def _parse_items(raw: Optional[str]) -> List[Dict[str, int]]:
    try:
        items = json.loads(raw) if raw else []
    except (TypeError, ValueError):
        return []
    parsed: List[Dict[str, int]] = []
    for it in items if isinstance(items, list) else []:
        try:
            pid = int(it.get("productId"))
            qty = int(it.get("quantity"))
        except (AttributeError, TypeError, ValueError):
            continue
        if pid > 0 and qty > 0:
            parsed.append({"productId": pid, "quantity": qty})
    return parsed

def extract_metadata_from_session(session: Dict[str, Any]) -> Tuple[Optional[str], List[Dict[str, int]], Any]:
    """
    Extrait (user_id, items, shipping_address) depuis une session Stripe Checkout.
    - Tolérant aux erreurs: items [] et adresse None si le JSON est illisible.
    """
    meta = (session or {}).get("metadata") or {}
    user_id = meta.get("user_id")
    items = _parse_items(_get(meta, "items"))
    shipping_address = None
    raw_address = _get(meta, "shipping_address")
    if raw_address:
        try:
            shipping_address = json.loads(raw_address)
        except (TypeError, ValueError):
            shipping_address = None
    return user_id, items, shipping_address
