from __future__ import annotations

import logging
from typing import Any

from cinetrack_core.types import CatalogItem, MediaKind
from pydantic import ValidationError

from .genres import genre_names

TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p/original"

log = logging.getLogger(__name__)


def _num(value: Any, cast=float):
    try:
        return cast(value) if value is not None else cast(0)
    except (TypeError, ValueError):
        return cast(0)


def _year(raw: dict[str, Any]) -> int | None:
    date = raw.get("release_date") or raw.get("first_air_date") or ""
    head = str(date)[:4]
    return int(head) if head.isdigit() else None


def _image(path: Any) -> str | None:
    return f"{TMDB_IMAGE_BASE_URL}{path}" if isinstance(path, str) and path else None


def parse_item(raw: Any) -> CatalogItem | None:
    """Validate one TMDB result into a CatalogItem; None when unusable."""
    if not isinstance(raw, dict) or raw.get("id") is None:
        return None
    ids = [g for g in raw.get("genre_ids") or [] if isinstance(g, int)]
    is_tv = raw.get("media_type") == "tv" or ("name" in raw and "title" not in raw)
    try:
        return CatalogItem(
            id=raw["id"],
            title=raw.get("title") or raw.get("name") or "Unknown Title",
            poster_url=_image(raw.get("poster_path")),
            backdrop_url=_image(raw.get("backdrop_path")),
            genre_ids=ids,
            genres=genre_names(ids)[:3],
            rating=round(_num(raw.get("vote_average")), 1),
            popularity=_num(raw.get("popularity")),
            vote_count=_num(raw.get("vote_count"), int),
            year=_year(raw),
            media_kind=MediaKind.SERIES if is_tv else MediaKind.MOVIE,
        )
    except ValidationError as e:
        log.debug("Dropping malformed catalog entry %s: %s", raw.get("id"), e)
        return None


def parse_results(payload: Any) -> list[CatalogItem]:
    if not isinstance(payload, dict):
        return []
    items = (parse_item(r) for r in payload.get("results") or [])
    return [it for it in items if it is not None]
