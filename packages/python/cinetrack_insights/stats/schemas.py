from datetime import datetime

from pydantic import BaseModel, Field


class Totals(BaseModel):
    watched_count: int = 0
    liked_count: int = 0
    watchlist_count: int = 0
    total_runtime_minutes: int = 0


class YearStat(BaseModel):
    year: int
    count: int
    runtime_minutes: int


class DecadeStat(BaseModel):
    decade: str  # "1990s"
    count: int
    runtime_minutes: int


class GenreStat(BaseModel):
    name: str
    count: int


class FavoriteStat(BaseModel):
    id: str
    title: str
    poster_url: str | None = None
    year: int | None = None
    updated_at: datetime | None = None


class RecentStat(BaseModel):
    id: str
    title: str
    poster_url: str | None = None
    watched_at: datetime | None = None
    year: int | None = None


class PeopleStat(BaseModel):
    id: int
    name: str
    count: int
    profile_path: str | None = None


class RatingStat(BaseModel):
    rating: int
    count: int


class StatsBundle(BaseModel):
    totals: Totals = Field(default_factory=Totals)
    films_by_year: list[YearStat] = Field(default_factory=list)
    decades: list[DecadeStat] = Field(default_factory=list)
    genres: list[GenreStat] = Field(default_factory=list)
    favorites: list[FavoriteStat] = Field(default_factory=list)
    recent: list[RecentStat] = Field(default_factory=list)
    actors: list[PeopleStat] = Field(default_factory=list)
    directors: list[PeopleStat] = Field(default_factory=list)
    ratings: list[RatingStat] = Field(default_factory=list)
