from datetime import datetime

from pydantic import BaseModel, Field


def _hours() -> dict[int, int]:
    return {h: 0 for h in range(24)}


def _days() -> dict[int, int]:
    return {d: 0 for d in range(7)}


def _ratings() -> dict[int, int]:
    return {r: 0 for r in range(1, 6)}


class TemporalPatterns(BaseModel):
    hour_histogram: dict[int, int] = Field(default_factory=_hours)  # 0..23 (UTC)
    day_of_week_histogram: dict[int, int] = Field(default_factory=_days)  # 0=Sunday


class BingePatterns(BaseModel):
    is_binger: bool = False
    binge_frequency: float = 0.0
    binge_days: int = 0


class GenreProgression(BaseModel):
    early_genres: dict[str, int] = Field(default_factory=dict)
    recent_genres: dict[str, int] = Field(default_factory=dict)


class BehaviorProfile(BaseModel):
    user_id: str
    watching_velocity: float = 0.0  # titles per week, trailing 90 days
    exploration_score: float = 0.5
    consistency_score: float = 0.5
    temporal_patterns: TemporalPatterns = Field(default_factory=TemporalPatterns)
    binge_patterns: BingePatterns = Field(default_factory=BingePatterns)
    rating_distribution: dict[int, int] = Field(default_factory=_ratings)
    genre_progression: GenreProgression = Field(default_factory=GenreProgression)
    computed_at: datetime
