from __future__ import annotations

from datetime import datetime
from typing import Any

from cinetrack_core.types import CatalogItem
from cinetrack_history.schemas import BundleRow
from cinetrack_insights.stats.schemas import StatsBundle
from cinetrack_recommendation.schemas import RecommendationSet
from pydantic import BaseModel, Field

_SET_FIELDS = set(RecommendationSet.model_fields)


class RecommendationBundle(RecommendationSet):
    """Cached recommendation set for one user. Replaced wholesale on every regeneration."""

    user_id: str
    updated_at: datetime
    is_stale: bool = False

    @classmethod
    def from_row(cls, row: BundleRow) -> "RecommendationBundle":
        return cls.model_validate(
            {
                **row.payload,
                "user_id": row.user_id,
                "updated_at": row.updated_at,
                "is_stale": row.is_stale,
            }
        )

    def to_payload(self) -> dict[str, Any]:
        # row metadata lives in its own columns
        return self.model_dump(mode="json", include=_SET_FIELDS)


class MoodResult(BaseModel):
    mood_id: str
    items: list[CatalogItem] = Field(default_factory=list)
    from_cache: bool


class CachedStats(BaseModel):
    user_id: str
    stats: StatsBundle
    updated_at: datetime
