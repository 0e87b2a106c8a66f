from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Iterable, Mapping, Sequence

from cinetrack_catalog.base import CatalogClient, DiscoverFilters
from cinetrack_catalog.genres import MOVIE_GENRE_VOCABULARY, genre_id, genre_ids
from cinetrack_core.config import (
    DEFAULT_RECOMMENDATION_LIMIT,
    EXPLORATION_FALLBACK_GENRES,
    EXPLORATION_MAX_GENRES,
    HIDDEN_GEM_MAX_RATING,
    HIDDEN_GEM_MAX_VOTES,
    HIDDEN_GEM_MIN_RATING,
    HIDDEN_GEM_MIN_VOTES,
    MOOD_MIN_VOTE_COUNT,
    PERSONALIZED_SEED_TITLES,
    PERSONALIZED_TOP_GENRES,
)
from cinetrack_core.errors import RuleViolation
from cinetrack_core.types import (
    CatalogItem,
    InteractionRecord,
    MediaKind,
    TitleId,
    dedupe_items,
)
from cinetrack_history.base import HistoryStore

from .moods import DEFAULT_MOOD, MOOD_TAXONOMY, Mood
from .schemas import RecommendationSet

log = logging.getLogger(__name__)

SeenKeys = set[tuple[MediaKind, TitleId]]


# ---------- helpers (pure) ----------


def seen_keys(history: Iterable[InteractionRecord]) -> SeenKeys:
    """Every (kind, id) already in the library, whatever its flags."""
    return {(r.media_kind, r.title_id) for r in history}


def exclude_seen(items: Iterable[CatalogItem], seen: SeenKeys) -> list[CatalogItem]:
    return [it for it in items if (it.media_kind, it.id) not in seen]


def top_genres(history: Sequence[InteractionRecord], n: int) -> list[tuple[str, int]]:
    """Most frequent genre names among watched or liked titles (ties: first seen)."""
    counts = Counter(
        g for r in history if r.watched or r.liked for g in r.genres
    )
    return counts.most_common(n)


def is_hidden_gem(item: CatalogItem) -> bool:
    # both bands inclusive
    return (
        HIDDEN_GEM_MIN_RATING <= item.rating <= HIDDEN_GEM_MAX_RATING
        and HIDDEN_GEM_MIN_VOTES <= item.vote_count <= HIDDEN_GEM_MAX_VOTES
    )


def unexplored_genres(history: Sequence[InteractionRecord]) -> list[int]:
    """Vocabulary genres the user never watched; least-watched ones if none are left."""
    counts: Counter[int] = Counter()
    for r in history:
        if r.watched:
            counts.update(genre_ids(r.genres))
    fresh = [g for g in MOVIE_GENRE_VOCABULARY if g not in counts]
    if fresh:
        return fresh[:EXPLORATION_MAX_GENRES]
    return sorted(MOVIE_GENRE_VOCABULARY, key=lambda g: counts[g])[:EXPLORATION_FALLBACK_GENRES]


class RecommendationEngine:
    """
    Builds the categorized recommendation lists for one user.

    Sub-generations (personalized, each mood, exploration, hidden gems) run
    concurrently; one failing degrades only its own list to empty.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        store: HistoryStore | None = None,
        *,
        moods: Mapping[str, Mood] = MOOD_TAXONOMY,
        limit: int = DEFAULT_RECOMMENDATION_LIMIT,
    ):
        self.catalog = catalog
        self.store = store
        self.moods = moods
        self.limit = limit

    async def _history(
        self, user_id: str, history: Sequence[InteractionRecord] | None
    ) -> Sequence[InteractionRecord]:
        if history is not None:
            return history
        if self.store is None:
            raise ValueError("history must be passed when no store is configured")
        return await self.store.get_history(user_id)

    def _settled(self, name: str, user_id: str, result) -> list[CatalogItem]:
        if isinstance(result, Exception):
            log.warning(
                "[recs] %s generation failed for user %s: %s", name, user_id, result
            )
            return []
        if isinstance(result, BaseException):
            raise result
        return result

    async def generate(
        self, user_id: str, history: Sequence[InteractionRecord] | None = None
    ) -> RecommendationSet:
        history = await self._history(user_id, history)
        seen = seen_keys(history)
        mood_list = list(self.moods.values())

        results = await asyncio.gather(
            self.personalized(history, seen),
            self.exploration(history, seen),
            self.hidden_gems(seen),
            *(self.mood(m, seen) for m in mood_list),
            return_exceptions=True,
        )
        personalized, exploration, hidden_gems = (
            self._settled(name, user_id, res)
            for name, res in zip(("personalized", "exploration", "hidden_gems"), results[:3])
        )
        moods: dict[str, list[CatalogItem]] = {}
        for mood, res in zip(mood_list, results[3:]):
            items = self._settled(f"mood:{mood.id}", user_id, res)
            if items:
                moods[mood.id] = items

        return RecommendationSet(
            personalized=personalized,
            moods=moods,
            exploration=exploration,
            hidden_gems=hidden_gems,
            default_mood=self.default_mood(history),
        )

    async def generate_mood(
        self,
        user_id: str,
        mood_id: str,
        history: Sequence[InteractionRecord] | None = None,
    ) -> list[CatalogItem]:
        mood = self.moods.get(mood_id)
        if mood is None:
            raise RuleViolation(f"unknown mood: {mood_id}", code="unknown_mood")
        history = await self._history(user_id, history)
        return await self.mood(mood, seen_keys(history))

    # ---------- sub-generations ----------

    async def personalized(
        self, history: Sequence[InteractionRecord], seen: SeenKeys
    ) -> list[CatalogItem]:
        weights: dict[int, int] = {}
        for name, count in top_genres(history, PERSONALIZED_TOP_GENRES):
            gid = genre_id(name)
            if gid is not None:
                weights.setdefault(gid, count)

        seeds = sorted(
            (r for r in history if r.liked and r.media_kind == MediaKind.MOVIE),
            key=lambda r: r.updated_at,
            reverse=True,
        )[:PERSONALIZED_SEED_TITLES]

        calls = [self.catalog.similar(r.title_id) for r in seeds]
        if weights:
            calls.insert(
                0,
                self.catalog.discover_by_genres(
                    list(weights), DiscoverFilters(min_vote_count=MOOD_MIN_VOTE_COUNT)
                ),
            )
        if not calls:
            return []

        batches = await asyncio.gather(*calls)
        candidates = exclude_seen(dedupe_items(it for b in batches for it in b), seen)

        def score(it: CatalogItem) -> int:
            return sum(weights.get(g, 0) for g in it.genre_ids)

        ranked = sorted(candidates, key=lambda it: (-score(it), -it.rating))
        return ranked[: self.limit]

    async def mood(self, mood: Mood, seen: SeenKeys) -> list[CatalogItem]:
        by_genre, by_keyword = await asyncio.gather(
            self.catalog.discover_by_genres(mood.genre_ids, mood.filters),
            self.catalog.discover_by_keywords(mood.keyword_ids, mood.filters),
        )
        merged = exclude_seen(dedupe_items([*by_genre, *by_keyword]), seen)
        return [it for it in merged if it.vote_count >= MOOD_MIN_VOTE_COUNT][: self.limit]

    async def exploration(
        self, history: Sequence[InteractionRecord], seen: SeenKeys
    ) -> list[CatalogItem]:
        genres = unexplored_genres(history)
        filters = DiscoverFilters(min_vote_count=MOOD_MIN_VOTE_COUNT)
        batches = await asyncio.gather(
            *(self.catalog.discover_by_genres([g], filters) for g in genres)
        )
        merged = exclude_seen(dedupe_items(it for b in batches for it in b), seen)
        merged.sort(key=lambda it: it.popularity, reverse=True)
        return merged[: self.limit]

    async def hidden_gems(self, seen: SeenKeys) -> list[CatalogItem]:
        trending, discovered = await asyncio.gather(
            self.catalog.trending(),
            self.catalog.discover_by_genres(
                (),
                DiscoverFilters(
                    min_vote_count=HIDDEN_GEM_MIN_VOTES,
                    max_vote_count=HIDDEN_GEM_MAX_VOTES,
                    min_rating=HIDDEN_GEM_MIN_RATING,
                    sort_by="vote_average.desc",
                ),
            ),
        )
        # catalog-side filters are only a hint; the band check below is authoritative
        gems = [it for it in dedupe_items([*trending, *discovered]) if is_hidden_gem(it)]
        return exclude_seen(gems, seen)[: self.limit]

    def default_mood(self, history: Sequence[InteractionRecord]) -> str:
        top = set(genre_ids(name for name, _ in top_genres(history, PERSONALIZED_TOP_GENRES)))
        best, best_overlap = DEFAULT_MOOD, 0
        for mood in self.moods.values():
            overlap = len(top.intersection(mood.genre_ids))
            if overlap > best_overlap:
                best, best_overlap = mood.id, overlap
        return best
