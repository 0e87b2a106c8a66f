from fastapi import APIRouter, Depends

from app.deps.deps_cache import get_coordinator
from app.deps.supabase_client import get_current_user_id
from app.errors import to_http
from cinetrack_cache.coordinator import CacheCoordinator
from cinetrack_cache.schemas import CachedStats
from cinetrack_core.errors import DomainError
from cinetrack_insights.behavior.schemas import BehaviorProfile

router = APIRouter(prefix="/v2/users/me", tags=["insights"])


@router.get("/stats", response_model=CachedStats)
async def get_stats(
    user_id: str = Depends(get_current_user_id),
    coordinator: CacheCoordinator = Depends(get_coordinator),
):
    try:
        return await coordinator.get_stats(user_id)
    except DomainError as e:
        raise to_http(e) from e


@router.get("/behavior", response_model=BehaviorProfile)
async def get_behavior(
    user_id: str = Depends(get_current_user_id),
    coordinator: CacheCoordinator = Depends(get_coordinator),
):
    try:
        return await coordinator.get_behavior(user_id)
    except DomainError as e:
        raise to_http(e) from e
