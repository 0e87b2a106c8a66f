from __future__ import annotations

from dataclasses import dataclass

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

# Connection-level failures that are safe to retry on a fresh socket.
_RETRY_ON = [RedisConnectionError, RedisTimeoutError, ConnectionResetError, OSError]


@dataclass(frozen=True)
class RedisClients:
    """Two async clients on one URL.
    - blobs: decode_responses=False, for the gzip'd catalog response cache
    - text:  decode_responses=True, for refresh lease tokens
    """

    blobs: Redis
    text: Redis

    async def aclose(self) -> None:
        await self.blobs.aclose()
        await self.text.aclose()


def make_redis_clients(redis_url: str) -> RedisClients:
    opts = dict(
        health_check_interval=10,
        socket_keepalive=True,
        socket_connect_timeout=2,
        socket_timeout=3,
        retry=Retry(ExponentialBackoff(cap=0.5, base=0.05), retries=2),
        retry_on_error=_RETRY_ON,
    )
    return RedisClients(
        blobs=redis.from_url(redis_url, decode_responses=False, **opts),
        text=redis.from_url(redis_url, decode_responses=True, **opts),
    )
