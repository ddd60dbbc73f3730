"""
Connexions Redis (asyncio) partagées: file d'événements, cache des taux de change.
- USE_FAKE_REDIS_FOR_TESTS=1: fakeredis en mémoire (tests/dev sans serveur)
"""
import os
from fastapi import Request
import redis.asyncio as redis

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except Exception:
    FakeRedis = None


def create_redis(url: str):
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        if not FakeRedis:
            raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
        return FakeRedis(decode_responses=True)
    return redis.from_url(url, encoding="utf-8", decode_responses=True)


def get_redis(request: Request):
    return request.app.state.redis
