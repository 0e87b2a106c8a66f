from typing import Any, cast
from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from cinetrack_cache.refresh_queue import RefreshQueue
from cinetrack_catalog.base import CatalogClient


def _get_state_attr(request: Request, name: str, error_detail: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail,
        )
    return value


def get_settings(request: Request) -> Any:
    return _get_state_attr(request, "settings", "Settings not initialized")


def get_catalog(request: Request) -> CatalogClient:
    return cast(
        CatalogClient,
        _get_state_attr(request, "catalog", "Catalog client not initialized"),
    )


def get_refresh_queue(request: Request) -> RefreshQueue:
    return cast(
        RefreshQueue,
        _get_state_attr(request, "refresh_queue", "Refresh queue not initialized"),
    )


@dataclass(frozen=True)
class SupabaseCreds:
    url: str
    api_key: str


def get_supabase_creds(request: Request) -> SupabaseCreds:
    settings = get_settings(request)
    return SupabaseCreds(
        url=settings.supabase_url or "",
        api_key=settings.supabase_api_key or "",
    )
