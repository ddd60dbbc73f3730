from fastapi import APIRouter, Depends

from ecoshop.currency.rates import BASE_CURRENCY, get_rates
from ecoshop.infra.redis_client import get_redis

router = APIRouter(prefix="/api/v1/currency", tags=["Currency API"])


@router.get("/rates")
async def exchange_rates(redis=Depends(get_redis)):
    """Taux (base USD) mis à jour toutes les 6 h par le worker; valeurs par défaut sinon."""
    data = dict(await get_rates(redis))
    updated_at = data.pop("updated_at", None)
    return {"base": BASE_CURRENCY, "rates": data, "updatedAt": updated_at}
