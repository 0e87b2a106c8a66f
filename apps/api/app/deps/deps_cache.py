from datetime import timedelta
from typing import Any

from fastapi import Depends

from app.deps.deps import get_catalog, get_refresh_queue, get_settings
from app.deps.supabase_client import get_supabase_client
from cinetrack_cache.coordinator import CacheCoordinator
from cinetrack_cache.events import StaleMarkingEmitter
from cinetrack_cache.refresh_queue import RefreshQueue
from cinetrack_catalog.base import CatalogClient
from cinetrack_history.base import HistoryStore
from cinetrack_history.supabase_repo import SupabaseHistoryStore
from cinetrack_recommendation.engine import RecommendationEngine


def get_history_store(client=Depends(get_supabase_client)) -> HistoryStore:
    return SupabaseHistoryStore(client)


def get_engine(
    catalog: CatalogClient = Depends(get_catalog),
    store: HistoryStore = Depends(get_history_store),
    settings: Any = Depends(get_settings),
) -> RecommendationEngine:
    return RecommendationEngine(catalog, store, limit=settings.recommendation_limit)


def get_coordinator(
    store: HistoryStore = Depends(get_history_store),
    engine: RecommendationEngine = Depends(get_engine),
    queue: RefreshQueue = Depends(get_refresh_queue),
    settings: Any = Depends(get_settings),
) -> CacheCoordinator:
    return CacheCoordinator(
        store,
        engine,
        queue,
        ttl=timedelta(seconds=settings.recommendation_ttl_sec),
    )


def get_stale_emitter(
    coordinator: CacheCoordinator = Depends(get_coordinator),
) -> StaleMarkingEmitter:
    return StaleMarkingEmitter(coordinator)
