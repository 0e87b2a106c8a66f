from __future__ import annotations

import gzip
import hashlib
import json
import time
from typing import Any, Mapping

from redis.asyncio import Redis
from redis.exceptions import RedisError

JsonObj = dict[str, Any]


def request_key(path: str, params: Mapping[str, Any]) -> str:
    """Stable cache key for a catalog request (credentials excluded)."""
    clean = sorted((k, str(v)) for k, v in params.items() if k != "api_key")
    raw = json.dumps([path, clean], separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class CatalogResponseCache:
    """
    Redis cache for raw catalog responses, gzip'd JSON.
    Key:   {namespace}{sha256(path + params)}
    Redis hiccups are treated as cache misses so catalog reads never fail on them.
    """

    def __init__(
        self,
        *,
        client: Redis,
        namespace: str = "cinetrack:catalog:",
        ttl_sec: int = 60 * 60,
        compression_level: int = 5,
    ) -> None:
        # client should be created with decode_responses=False (bytes payloads)
        self._r = client
        self._ns = namespace
        self._ttl = int(ttl_sec)
        self._level = int(compression_level)

    def _k(self, key: str) -> str:
        return f"{self._ns}{key}"

    # ----- codec -----

    def _encode(self, payload: JsonObj) -> bytes:
        raw = json.dumps(
            {"cached_at": time.time(), "payload": payload},
            ensure_ascii=False,
            separators=(",", ":"),
        ).encode("utf-8")
        return gzip.compress(raw, compresslevel=self._level)

    def _decode(self, blob: bytes) -> JsonObj | None:
        try:
            data = json.loads(gzip.decompress(blob).decode("utf-8"))
        except (OSError, ValueError):
            return None
        payload = data.get("payload") if isinstance(data, dict) else None
        return payload if isinstance(payload, dict) else None

    # ----- API -----

    async def get(self, key: str) -> JsonObj | None:
        try:
            blob = await self._r.get(self._k(key))
        except (RedisError, RuntimeError):
            return None
        if not blob:
            return None
        payload = self._decode(blob)
        if payload is None:
            await self.delete(key)
        return payload

    async def put(self, key: str, payload: JsonObj, ttl_sec: int | None = None) -> None:
        try:
            await self._r.set(self._k(key), self._encode(payload), ex=int(ttl_sec or self._ttl))
        except (RedisError, RuntimeError):
            return

    async def delete(self, key: str) -> None:
        try:
            await self._r.delete(self._k(key))
        except (RedisError, RuntimeError):
            return
