from fastapi import APIRouter, Depends

from app.deps.deps_cache import get_coordinator
from app.deps.supabase_client import get_current_user_id
from app.errors import to_http
from cinetrack_cache.coordinator import CacheCoordinator
from cinetrack_cache.schemas import MoodResult, RecommendationBundle
from cinetrack_core.errors import DomainError

router = APIRouter(prefix="/v2/users/me/recommendations", tags=["recommendations"])


@router.get("", response_model=RecommendationBundle)
async def get_recommendations(
    user_id: str = Depends(get_current_user_id),
    coordinator: CacheCoordinator = Depends(get_coordinator),
):
    try:
        return await coordinator.get_recommendations(user_id)
    except DomainError as e:
        raise to_http(e) from e


@router.get("/moods/{mood_id}", response_model=MoodResult)
async def get_mood(
    mood_id: str,
    user_id: str = Depends(get_current_user_id),
    coordinator: CacheCoordinator = Depends(get_coordinator),
):
    try:
        return await coordinator.get_mood(user_id, mood_id)
    except DomainError as e:
        raise to_http(e) from e


@router.post("/refresh", response_model=RecommendationBundle)
async def refresh_recommendations(
    user_id: str = Depends(get_current_user_id),
    coordinator: CacheCoordinator = Depends(get_coordinator),
):
    try:
        return await coordinator.refresh(user_id)
    except DomainError as e:
        raise to_http(e) from e
