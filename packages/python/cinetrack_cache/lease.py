from __future__ import annotations

import logging
import uuid
from typing import Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

log = logging.getLogger(__name__)


class RefreshLease(Protocol):
    async def acquire(self, key: str) -> bool: ...

    async def release(self, key: str) -> None: ...


class RedisRefreshLease:
    """
    Cross-process refresh lease: SET NX EX on {namespace}{key}.
    The TTL bounds how long a crashed holder can block others. Redis errors
    grant the lease, so de-duplication degrades to process-local only.
    """

    def __init__(
        self,
        *,
        client: Redis,
        namespace: str = "cinetrack:refresh:",
        ttl_sec: int = 5 * 60,
    ) -> None:
        # client should be created with decode_responses=True
        self._r = client
        self._ns = namespace
        self._ttl = int(ttl_sec)
        self._token = uuid.uuid4().hex

    def _k(self, key: str) -> str:
        return f"{self._ns}{key}"

    async def acquire(self, key: str) -> bool:
        try:
            return bool(await self._r.set(self._k(key), self._token, nx=True, ex=self._ttl))
        except (RedisError, RuntimeError) as e:
            log.warning("[lease] acquire %s failed, continuing without lease: %s", key, e)
            return True

    async def release(self, key: str) -> None:
        try:
            # only drop a lease this process still holds
            if await self._r.get(self._k(key)) == self._token:
                await self._r.delete(self._k(key))
        except (RedisError, RuntimeError) as e:
            log.warning("[lease] release %s failed: %s", key, e)
