import logging
from types import MappingProxyType
from typing import Any, Mapping

from cinetrack_core.types import BundleKind

from .coordinator import CacheCoordinator

log = logging.getLogger(__name__)

_ALL = (BundleKind.RECOMMENDATIONS, BundleKind.BEHAVIOR, BundleKind.STATS)

# write-path event -> bundles whose inputs it changes
STALE_KINDS_BY_EVENT: Mapping[str, tuple[BundleKind, ...]] = MappingProxyType(
    {
        "watched_toggled": _ALL,
        "liked_toggled": _ALL,
        "watchlist_toggled": _ALL,
        "rating_added": _ALL,
        "episode_progress": (BundleKind.RECOMMENDATIONS, BundleKind.BEHAVIOR),
    }
)


class StaleMarkingEmitter:
    """Event sink for the CRUD write path: flags affected bundles stale, never recomputes."""

    def __init__(self, coordinator: CacheCoordinator):
        self.coordinator = coordinator

    async def emit(self, name: str, payload: Mapping[str, Any]) -> None:
        kinds = STALE_KINDS_BY_EVENT.get(name)
        if not kinds:
            return
        user_id = payload.get("user_id")
        if not user_id:
            log.warning("[events] %s without user_id, nothing marked stale", name)
            return
        await self.coordinator.mark_all_stale(str(user_id), kinds)
