"""
Taux de change (base USD) mis en cache dans Redis (hash currency:rates).
- rafraîchis par la tâche planifiée update-exchange-rates
- lecture: cache Redis, sinon taux par défaut
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

import httpx

from ecoshop.config import EXCHANGE_RATES_URL, SUPPORTED_CURRENCIES

logger = logging.getLogger(__name__)

RATES_KEY = "currency:rates"
BASE_CURRENCY = "USD"

# Valeurs de repli tant que la tâche n'a pas tourné
DEFAULT_RATES = {"USD": "1", "EUR": "0.92", "TRY": "32.5"}


async def fetch_rates(http: httpx.AsyncClient, url: str = EXCHANGE_RATES_URL, currencies=SUPPORTED_CURRENCIES) -> Dict[str, str]:
    """
    Interroge l'API de taux (réponse {"result": "success", "rates": {...}}).
    Erreurs: httpx.HTTPError, ValueError si une devise supportée manque.
    """
    res = await http.get(url, timeout=10)
    res.raise_for_status()
    payload = res.json()
    if payload.get("result", "success") != "success":
        raise ValueError(f"API de taux en erreur: {payload.get('error-type') or payload.get('result')}")
    rates = payload.get("rates") or {}
    missing = [c for c in currencies if c not in rates]
    if missing:
        raise ValueError(f"Taux manquants: {', '.join(missing)}")
    return {c: str(rates[c]) for c in currencies}


async def store_rates(redis, rates: Dict[str, str]) -> None:
    await redis.hset(RATES_KEY, mapping={**rates, "updated_at": datetime.now(timezone.utc).isoformat()})


async def get_rates(redis) -> Dict[str, str]:
    cached = await redis.hgetall(RATES_KEY)
    if not cached:
        return {**DEFAULT_RATES, "updated_at": None}
    return cached


def convert_minor(amount: int, from_currency: str, to_currency: str, rates: Dict[str, str]) -> int:
    """Convertit un montant en centimes d'une devise à l'autre via USD, arrondi demi vers le haut."""
    src, dst = from_currency.upper(), to_currency.upper()
    if src == dst:
        return amount
    value = Decimal(amount) / Decimal(str(rates[src])) * Decimal(str(rates[dst]))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def refresh_rates(redis, http: httpx.AsyncClient) -> Dict[str, str]:
    rates = await fetch_rates(http)
    await store_rates(redis, rates)
    logger.info("currency.rates_updated %s", rates)
    return rates
