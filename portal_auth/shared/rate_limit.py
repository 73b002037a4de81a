# caminho: portal_auth/shared/rate_limit.py
# Funções:
# - IpRateLimiter: protocolo de contagem de tentativas de login por IP
# - InMemoryIpRateLimiter: janela fixa em memória do processo (padrão)
# - RedisIpRateLimiter: mesma janela fixa compartilhada entre processos via Redis
# - NullIpRateLimiter: implementação no-op
#
# Janela fixa, não log deslizante: na virada da janela um IP pode fazer até 2N
# tentativas. O estado em memória é por processo; com várias instâncias cada uma
# conta separadamente (use RATE_LIMIT_BACKEND=redis nesse cenário).

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

import redis.asyncio as redis


@dataclass(slots=True, frozen=True)
class RateLimitState:
    limited: bool
    remaining: int


class IpRateLimiter(Protocol):
    async def record_attempt(self, ip: str) -> RateLimitState: ...


@dataclass(slots=True)
class _IpWindow:
    count: int
    reset_at: float


class InMemoryIpRateLimiter:
    def __init__(
        self,
        max_attempts: int,
        window_seconds: float,
        *,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_attempts = max(1, int(max_attempts))
        self._window = max(1.0, float(window_seconds))
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self._entries: dict[str, _IpWindow] = {}
        self._next_sweep_at = 0.0
        self._lock = Lock()

    @property
    def tracked_ips(self) -> int:
        return len(self._entries)

    async def record_attempt(self, ip: str) -> RateLimitState:
        return self.record(ip)

    def record(self, ip: str) -> RateLimitState:
        now = self._clock()
        with self._lock:
            self._maybe_sweep(now)
            entry = self._entries.get(ip)
            if entry is None or entry.reset_at < now:
                # reinserção mantém o dict ordenado pelo início da janela
                self._entries.pop(ip, None)
                self._entries[ip] = _IpWindow(count=1, reset_at=now + self._window)
                self._enforce_capacity()
                return RateLimitState(limited=False, remaining=self._max_attempts - 1)

            entry.count += 1
            if entry.count > self._max_attempts:
                return RateLimitState(limited=True, remaining=0)
            return RateLimitState(limited=False, remaining=self._max_attempts - entry.count)

    def _maybe_sweep(self, now: float) -> None:
        if now < self._next_sweep_at:
            return
        expired = [ip for ip, entry in self._entries.items() if entry.reset_at < now]
        for ip in expired:
            del self._entries[ip]
        self._next_sweep_at = now + self._window

    def _enforce_capacity(self) -> None:
        while len(self._entries) > self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]


class RedisIpRateLimiter:
    def __init__(
        self,
        client: redis.Redis,
        max_attempts: int,
        window_seconds: float,
        *,
        prefix: str = 'admin:login:ip',
    ) -> None:
        self._client = client
        self._max_attempts = max(1, int(max_attempts))
        self._window = max(1, int(window_seconds))
        self._prefix = prefix

    async def record_attempt(self, ip: str) -> RateLimitState:
        key = self._key(ip)
        count = await self._client.incr(key)
        if count == 1:
            await self._client.expire(key, self._window)
        else:
            ttl = await self._client.ttl(key)
            if ttl is None or ttl < 0:  # chave sem expiração (falha entre INCR e EXPIRE)
                await self._client.expire(key, self._window)

        if count > self._max_attempts:
            return RateLimitState(limited=True, remaining=0)
        return RateLimitState(limited=False, remaining=self._max_attempts - count)

    def _key(self, ip: str) -> str:
        return f'{self._prefix}:{ip}'


class NullIpRateLimiter:
    async def record_attempt(self, ip: str) -> RateLimitState:
        return RateLimitState(limited=False, remaining=0)
