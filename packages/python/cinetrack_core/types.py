from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, Field, field_validator, model_validator

TitleId = str


class MediaKind(str, Enum):
    MOVIE = "movie"
    SERIES = "series"
    BOOK = "book"


class BundleKind(str, Enum):
    BEHAVIOR = "behavior"
    RECOMMENDATIONS = "recommendations"
    STATS = "stats"


def ensure_ts(value) -> datetime | None:
    """Normalize timestamps coming from Postgres/Supabase into tz-aware datetimes."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        # Supabase returns ISO strings that may end with `Z`; make them explicit UTC.
        normalized = raw.replace("Z", "+00:00") if raw.endswith("Z") else raw
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _json_list(value: Any) -> list:
    # Legacy rows store lists as JSON text
    if value is None:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            return []
    return list(value) if isinstance(value, (list, tuple)) else []


class Person(BaseModel):
    id: int
    name: str
    profile_path: str | None = None


class CrewCredit(Person):
    job: str | None = None


def _people(value: Any, model: type[Person]) -> list:
    out = []
    for raw in _json_list(value):
        if not isinstance(raw, dict):
            continue
        try:
            out.append(model.model_validate(raw))
        except ValueError:
            continue
    return out


class InteractionRecord(BaseModel):
    """One (user, title, media kind) row of the user's library."""

    user_id: str
    title_id: TitleId
    media_kind: MediaKind = MediaKind.MOVIE
    title: str | None = None
    poster_url: str | None = None
    year: int | None = None
    watched: bool = False
    watched_at: datetime | None = None
    liked: bool = False
    watchlisted: bool = False
    genres: list[str] = Field(default_factory=list)
    cast: list[Person] = Field(default_factory=list)
    crew: list[CrewCredit] = Field(default_factory=list)
    runtime_minutes: int | None = None
    updated_at: datetime

    @field_validator("title_id", mode="before")
    @classmethod
    def _coerce_title_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("genres", mode="before")
    @classmethod
    def _coerce_genres(cls, v):
        return [g for g in _json_list(v) if isinstance(g, str)]

    @field_validator("cast", mode="before")
    @classmethod
    def _coerce_cast(cls, v):
        return _people(v, Person)

    @field_validator("crew", mode="before")
    @classmethod
    def _coerce_crew(cls, v):
        return _people(v, CrewCredit)

    @field_validator("watched_at", "updated_at", mode="before")
    @classmethod
    def _coerce_ts(cls, v):
        return ensure_ts(v) if v is not None else None


class RatingRecord(BaseModel):
    user_id: str
    title_id: TitleId | None = None
    episode_id: str | None = None
    rating: int = Field(ge=1, le=5)
    text: str | None = None
    created_at: datetime

    @field_validator("title_id", "episode_id", mode="before")
    @classmethod
    def _coerce_ids(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_ts(cls, v):
        return ensure_ts(v)

    @model_validator(mode="after")
    def _one_subject(self):
        if (self.title_id is None) == (self.episode_id is None):
            raise ValueError("rating must reference exactly one of title_id / episode_id")
        return self


class CatalogItem(BaseModel):
    """Denormalized catalog entry as cached inside recommendation bundles."""

    id: TitleId
    title: str
    poster_url: str | None = None
    backdrop_url: str | None = None
    genres: list[str] = Field(default_factory=list)
    genre_ids: list[int] = Field(default_factory=list)
    rating: float = 0.0
    popularity: float = 0.0
    vote_count: int = 0
    year: int | None = None
    media_kind: MediaKind = MediaKind.MOVIE

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v):
        return str(v) if isinstance(v, int) else v


def dedupe_items(items: Iterable[CatalogItem]) -> list[CatalogItem]:
    """Keep the first occurrence of every catalog id, preserving order."""
    seen: set[TitleId] = set()
    out: list[CatalogItem] = []
    for it in items:
        if it.id in seen:
            continue
        seen.add(it.id)
        out.append(it)
    return out
