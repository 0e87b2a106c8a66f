import asyncio
import logging
from datetime import date
from typing import Any, Optional, Sequence

import httpx
from cinetrack_core.types import CatalogItem, TitleId

from .base import DiscoverFilters
from .parsing import parse_results
from .response_cache import CatalogResponseCache, request_key

log = logging.getLogger(__name__)


class TMDBClient:
    """CatalogClient backed by the TMDB v3 API.

    Every public method returns ``[]`` when TMDB is unreachable or answers
    with an error after retries; callers treat an empty list as "nothing to
    recommend" rather than as a failure.
    """

    BASE_URL = "https://api.themoviedb.org/3"

    def __init__(
        self,
        api_key: str,
        max_connections: int = 15,
        timeout: float = 10.0,
        *,
        retries: int = 2,
        retry_delay: float = 1.0,
        cache: CatalogResponseCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        limits = httpx.Limits(
            max_connections=max_connections, max_keepalive_connections=max_connections
        )
        self.client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=httpx.Timeout(timeout),
            limits=limits,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self.semaphore = asyncio.Semaphore(max_connections)
        self.retries = retries
        self.retry_delay = retry_delay
        self.cache = cache

    def build_discover_params(
        self,
        filters: DiscoverFilters,
        *,
        genre_ids: Sequence[int] = (),
        keyword_ids: Sequence[int] = (),
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "language": "en-US",
            "region": "US",
            "page": filters.page,
            "sort_by": filters.sort_by,
            "include_adult": "false",
            "primary_release_date.lte": filters.released_before or date.today().isoformat(),
            "without_genres": "10770",
        }
        # "|" is OR in TMDB discover
        if genre_ids:
            params["with_genres"] = "|".join(str(g) for g in genre_ids)
        if keyword_ids:
            params["with_keywords"] = "|".join(str(k) for k in keyword_ids)
        if filters.min_vote_count is not None:
            params["vote_count.gte"] = filters.min_vote_count
        if filters.max_vote_count is not None:
            params["vote_count.lte"] = filters.max_vote_count
        if filters.min_rating is not None:
            params["vote_average.gte"] = filters.min_rating
        if filters.max_rating is not None:
            params["vote_average.lte"] = filters.max_rating
        return params

    async def get(self, path: str, params: Optional[dict[str, Any]] = None):
        query = {**(params or {}), "api_key": self.api_key}
        async with self.semaphore:
            try:
                response = await self.client.get(path, params=query)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                log.warning("[TMDB] HTTP %s on %s", e.response.status_code, path)
            except httpx.RequestError as e:
                log.warning("[TMDB] request error on %s: %s", path, e)
            except ValueError as e:
                log.warning("[TMDB] invalid JSON from %s: %s", path, e)
        return None

    async def get_with_retry(self, path: str, params: Optional[dict[str, Any]] = None):
        key = request_key(path, params or {})
        if self.cache is not None:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached

        for attempt in range(self.retries + 1):
            result = await self.get(path, params)
            if result:
                if self.cache is not None and isinstance(result, dict):
                    await self.cache.put(key, result)
                return result
            if attempt < self.retries:
                await asyncio.sleep(self.retry_delay * (2**attempt))  # Exponential backoff
        return None

    # ---------- CatalogClient ----------

    async def discover_by_genres(
        self, genre_ids: Sequence[int], filters: DiscoverFilters | None = None
    ) -> list[CatalogItem]:
        params = self.build_discover_params(filters or DiscoverFilters(), genre_ids=genre_ids)
        return parse_results(await self.get_with_retry("/discover/movie", params))

    async def discover_by_keywords(
        self, keyword_ids: Sequence[int], filters: DiscoverFilters | None = None
    ) -> list[CatalogItem]:
        if not keyword_ids:
            return []
        params = self.build_discover_params(filters or DiscoverFilters(), keyword_ids=keyword_ids)
        return parse_results(await self.get_with_retry("/discover/movie", params))

    async def similar(self, title_id: TitleId) -> list[CatalogItem]:
        data = await self.get_with_retry(
            f"/movie/{title_id}/recommendations", {"language": "en-US", "page": 1}
        )
        return parse_results(data)

    async def trending(self) -> list[CatalogItem]:
        return parse_results(
            await self.get_with_retry("/trending/movie/day", {"language": "en-US"})
        )

    async def aclose(self):
        await self.client.aclose()
