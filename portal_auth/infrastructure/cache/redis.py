# caminho: portal_auth/infrastructure/cache/redis.py
# Funções:
# - create_redis_client(): cliente Redis assíncrono para o limitador compartilhado
# - close_redis_client(): encerra o cliente no shutdown da aplicação

from __future__ import annotations

import redis.asyncio as redis

from portal_auth.config.settings import Settings


def create_redis_client(settings: Settings) -> redis.Redis:
    return redis.from_url(settings.REDIS_URL, encoding='utf-8', decode_responses=True)


async def close_redis_client(client: redis.Redis) -> None:
    close = getattr(client, 'aclose', None)
    if callable(close):
        await close()
    else:  # pragma: no cover - versões antigas
        await client.close()
