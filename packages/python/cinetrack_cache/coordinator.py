"""
Per-user bundle cache with a stale-while-revalidate protocol.

States per (user, kind): Missing -> Fresh -> Stale -> (regenerating) -> Fresh.

- Missing: build synchronously (one build per user, concurrent first reads
  share it), upsert, return.
- Fresh (age < TTL, not flagged): return as stored (recommendations get a
  response-only seen-item filter).
- Stale (age >= TTL or flagged): return the stored bundle unchanged and
  schedule at most one background regeneration per user.

Bundles are always written whole; ``updated_at`` and ``is_stale`` are the only
staleness signals. ``mark_stale`` also stamps ``stale_since``, and every write
carries the instant its generation started, so a mutation that lands mid-build
leaves the new row flagged.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from cinetrack_core.config import RECOMMENDATION_TTL
from cinetrack_core.errors import Conflict, DomainError, RuleViolation
from cinetrack_core.types import BundleKind, InteractionRecord, RatingRecord
from cinetrack_history.base import HistoryStore
from cinetrack_history.schemas import BundleRow
from cinetrack_insights.behavior.analyzer import compute_profile
from cinetrack_insights.behavior.schemas import BehaviorProfile
from cinetrack_insights.stats.aggregator import compute_stats
from cinetrack_insights.stats.schemas import StatsBundle
from cinetrack_recommendation.engine import RecommendationEngine, SeenKeys, exclude_seen, seen_keys
from pydantic import ValidationError

from .refresh_queue import RefreshQueue
from .schemas import CachedStats, MoodResult, RecommendationBundle

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def filter_seen(bundle: RecommendationBundle, seen: SeenKeys) -> RecommendationBundle:
    """Response-only view without titles the user has added since generation."""
    moods = {}
    for mood_id, items in bundle.moods.items():
        kept = exclude_seen(items, seen)
        if kept:
            moods[mood_id] = kept
    return bundle.model_copy(
        update={
            "personalized": exclude_seen(bundle.personalized, seen),
            "moods": moods,
            "exploration": exclude_seen(bundle.exploration, seen),
            "hidden_gems": exclude_seen(bundle.hidden_gems, seen),
        }
    )


class CacheCoordinator:
    def __init__(
        self,
        store: HistoryStore,
        engine: RecommendationEngine,
        queue: RefreshQueue,
        *,
        ttl: timedelta = RECOMMENDATION_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.engine = engine
        self.queue = queue
        self.ttl = ttl
        self.clock = clock

    # ---------- staleness ----------

    def is_stale(self, row: BundleRow) -> bool:
        return row.is_stale or self.clock() - row.updated_at >= self.ttl

    @staticmethod
    def refresh_key(user_id: str) -> str:
        return f"{BundleKind.RECOMMENDATIONS.value}:{user_id}"

    # ---------- store helpers ----------

    async def _load_inputs(
        self, user_id: str
    ) -> tuple[list[InteractionRecord], list[RatingRecord]]:
        history, ratings = await asyncio.gather(
            self.store.get_history(user_id), self.store.get_ratings(user_id)
        )
        return history, ratings

    async def _persist(
        self,
        kind: BundleKind,
        user_id: str,
        payload: dict[str, Any],
        updated_at: datetime,
        started: datetime,
    ) -> BundleRow | None:
        try:
            return await self.store.upsert_bundle(
                kind, user_id, payload, updated_at=updated_at, generation_started=started
            )
        except Conflict as e:
            # user removed mid-generation; nothing to cache for
            log.info("[cache] dropping %s bundle for user %s: %s", kind.value, user_id, e)
        except DomainError as e:
            log.warning("[cache] %s upsert failed for user %s: %s", kind.value, user_id, e)
        return None

    def _decode_recommendations(self, row: BundleRow | None) -> RecommendationBundle | None:
        if row is None:
            return None
        try:
            return RecommendationBundle.from_row(row)
        except ValidationError as e:
            log.warning("[cache] unreadable recommendations for user %s: %s", row.user_id, e)
            return None

    # ---------- recommendations ----------

    async def build_recommendations(self, user_id: str) -> RecommendationBundle:
        """Recompute behavior + recommendations and upsert both (whole rows)."""
        started = self.clock()
        history, ratings = await self._load_inputs(user_id)
        now = self.clock()
        profile = compute_profile(user_id, history, ratings, now=now)
        generated = await self.engine.generate(user_id, history)
        bundle = RecommendationBundle(user_id=user_id, updated_at=now, **dict(generated))

        await self._persist(
            BundleKind.BEHAVIOR, user_id, profile.model_dump(mode="json"), now, started
        )
        row = await self._persist(
            BundleKind.RECOMMENDATIONS, user_id, bundle.to_payload(), now, started
        )
        if row is None or row.is_stale:
            bundle.is_stale = True
        return bundle

    def schedule_refresh(self, user_id: str) -> bool:
        return self.queue.submit(
            self.refresh_key(user_id), lambda: self.build_recommendations(user_id)
        )

    async def _build_once(self, user_id: str) -> RecommendationBundle:
        bundle = await self.queue.run(
            self.refresh_key(user_id), lambda: self.build_recommendations(user_id)
        )
        if bundle is None:
            # another worker holds the lease; this read still needs an answer
            bundle = await self.build_recommendations(user_id)
        return bundle

    async def get_recommendations(self, user_id: str) -> RecommendationBundle:
        row = await self.store.get_bundle(BundleKind.RECOMMENDATIONS, user_id)
        bundle = self._decode_recommendations(row)
        if bundle is None:
            return await self._build_once(user_id)

        if self.is_stale(row):
            if self.schedule_refresh(user_id):
                log.info("[cache] serving stale recommendations for %s, refresh scheduled", user_id)
            bundle.is_stale = True
            return bundle

        history = await self.store.get_history(user_id)
        return filter_seen(bundle, seen_keys(history))

    async def refresh(self, user_id: str) -> RecommendationBundle:
        """Forced regeneration; joins an in-flight background refresh instead of racing it."""
        key = self.refresh_key(user_id)
        if self.queue.in_flight(key):
            await self.queue.wait(key)
            row = await self.store.get_bundle(BundleKind.RECOMMENDATIONS, user_id)
            bundle = self._decode_recommendations(row)
            if bundle is not None and not self.is_stale(row):
                return bundle
        return await self.build_recommendations(user_id)

    async def get_mood(self, user_id: str, mood_id: str) -> MoodResult:
        if mood_id not in self.engine.moods:
            raise RuleViolation(f"unknown mood: {mood_id}", code="unknown_mood")
        bundle = await self.get_recommendations(user_id)
        items = bundle.moods.get(mood_id)
        if items:
            return MoodResult(mood_id=mood_id, items=items, from_cache=True)
        # not in the bundle: generate just this mood, without touching the cache
        items = await self.engine.generate_mood(user_id, mood_id)
        return MoodResult(mood_id=mood_id, items=items, from_cache=False)

    # ---------- behavior / stats ----------

    async def get_behavior(self, user_id: str) -> BehaviorProfile:
        row = await self.store.get_bundle(BundleKind.BEHAVIOR, user_id)
        if row is not None and not self.is_stale(row):
            try:
                return BehaviorProfile.model_validate(row.payload)
            except ValidationError as e:
                log.warning("[cache] unreadable behavior profile for user %s: %s", user_id, e)

        started = self.clock()
        history, ratings = await self._load_inputs(user_id)
        now = self.clock()
        profile = compute_profile(user_id, history, ratings, now=now)
        await self._persist(
            BundleKind.BEHAVIOR, user_id, profile.model_dump(mode="json"), now, started
        )
        return profile

    async def get_stats(self, user_id: str) -> CachedStats:
        # stats are cheap and local: only a missing or flagged row triggers a rebuild
        row = await self.store.get_bundle(BundleKind.STATS, user_id)
        if row is not None and not row.is_stale:
            try:
                return CachedStats(
                    user_id=user_id,
                    stats=StatsBundle.model_validate(row.payload),
                    updated_at=row.updated_at,
                )
            except ValidationError as e:
                log.warning("[cache] unreadable stats for user %s: %s", user_id, e)

        started = self.clock()
        history, ratings = await self._load_inputs(user_id)
        now = self.clock()
        stats = compute_stats(history, ratings)
        await self._persist(BundleKind.STATS, user_id, stats.model_dump(mode="json"), now, started)
        return CachedStats(user_id=user_id, stats=stats, updated_at=now)

    # ---------- invalidation ----------

    async def mark_stale(self, kind: BundleKind, user_id: str) -> None:
        await self.store.mark_stale(kind, user_id, at=self.clock())

    async def mark_all_stale(
        self, user_id: str, kinds: Iterable[BundleKind] = tuple(BundleKind)
    ) -> None:
        at = self.clock()
        for kind in kinds:
            await self.store.mark_stale(kind, user_id, at=at)

    async def invalidate(self, user_id: str) -> None:
        """Drop every cached bundle for the user (account / data reset)."""
        for kind in BundleKind:
            await self.store.delete_bundle(kind, user_id)
