from fastapi import APIRouter, Depends

from app.deps.deps_cache import get_coordinator, get_stale_emitter
from app.deps.supabase_client import get_current_user_id
from app.errors import to_http
from app.schemas import InvalidateResponse, MarkStaleRequest, MarkStaleResponse
from cinetrack_cache.coordinator import CacheCoordinator
from cinetrack_cache.events import STALE_KINDS_BY_EVENT, StaleMarkingEmitter
from cinetrack_core.errors import DomainError
from cinetrack_core.types import BundleKind

router = APIRouter(prefix="/v2/users/me/cache", tags=["cache"])


# ---- Mutation hook for external writers ----
@router.post("/stale", response_model=MarkStaleResponse)
async def mark_stale(
    req: MarkStaleRequest,
    user_id: str = Depends(get_current_user_id),
    coordinator: CacheCoordinator = Depends(get_coordinator),
    emitter: StaleMarkingEmitter = Depends(get_stale_emitter),
):
    try:
        if req.event is not None:
            await emitter.emit(req.event, {"user_id": user_id})
            kinds = list(STALE_KINDS_BY_EVENT[req.event])
        else:
            await coordinator.mark_all_stale(user_id, req.kinds)
            kinds = req.kinds
    except DomainError as e:
        raise to_http(e) from e
    return MarkStaleResponse(user_id=user_id, kinds=kinds)


# ---- Data reset ----
@router.delete("", response_model=InvalidateResponse)
async def invalidate(
    user_id: str = Depends(get_current_user_id),
    coordinator: CacheCoordinator = Depends(get_coordinator),
):
    try:
        await coordinator.invalidate(user_id)
    except DomainError as e:
        raise to_http(e) from e
    return InvalidateResponse(user_id=user_id, deleted=list(BundleKind))
