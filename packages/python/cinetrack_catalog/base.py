from __future__ import annotations

from typing import Protocol, Sequence

from cinetrack_core.types import CatalogItem, TitleId
from pydantic import BaseModel


class DiscoverFilters(BaseModel):
    min_vote_count: int | None = None
    max_vote_count: int | None = None
    min_rating: float | None = None
    max_rating: float | None = None
    released_before: str | None = None  # YYYY-MM-DD
    sort_by: str = "popularity.desc"
    page: int = 1


class CatalogClient(Protocol):
    """Remote discovery service. Implementations return [] on upstream failure."""

    async def discover_by_genres(
        self, genre_ids: Sequence[int], filters: DiscoverFilters | None = None
    ) -> list[CatalogItem]: ...

    async def discover_by_keywords(
        self, keyword_ids: Sequence[int], filters: DiscoverFilters | None = None
    ) -> list[CatalogItem]: ...

    async def similar(self, title_id: TitleId) -> list[CatalogItem]: ...

    async def trending(self) -> list[CatalogItem]: ...
