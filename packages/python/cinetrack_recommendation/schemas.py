from cinetrack_core.types import CatalogItem
from pydantic import BaseModel, Field

from .moods import DEFAULT_MOOD


class RecommendationSet(BaseModel):
    """Output of one generation pass. Absent mood keys mean "unavailable", not empty."""

    personalized: list[CatalogItem] = Field(default_factory=list)
    moods: dict[str, list[CatalogItem]] = Field(default_factory=dict)
    exploration: list[CatalogItem] = Field(default_factory=list)
    hidden_gems: list[CatalogItem] = Field(default_factory=list)
    default_mood: str = DEFAULT_MOOD
