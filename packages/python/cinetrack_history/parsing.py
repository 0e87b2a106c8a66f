from __future__ import annotations

import logging
from typing import Any, Iterable

from cinetrack_core.types import BundleKind, InteractionRecord, RatingRecord, ensure_ts
from pydantic import ValidationError

from .schemas import BundleRow

log = logging.getLogger(__name__)


def parse_history_rows(rows: Iterable[dict[str, Any]]) -> list[InteractionRecord]:
    out: list[InteractionRecord] = []
    for row in rows:
        try:
            out.append(InteractionRecord.model_validate(row))
        except ValidationError as e:
            log.warning(
                "Skipping malformed library row %s/%s: %s",
                row.get("user_id"),
                row.get("title_id"),
                e.errors()[0]["msg"] if e.errors() else e,
            )
    return out


def parse_rating_rows(rows: Iterable[dict[str, Any]]) -> list[RatingRecord]:
    out: list[RatingRecord] = []
    for row in rows:
        try:
            out.append(RatingRecord.model_validate(row))
        except ValidationError:
            log.warning("Skipping malformed rating row for user %s", row.get("user_id"))
    return out


def parse_bundle_row(row: dict[str, Any] | None) -> BundleRow | None:
    if not row:
        return None
    updated_at = ensure_ts(row.get("updated_at"))
    payload = row.get("payload")
    if updated_at is None or not isinstance(payload, dict):
        # Unreadable rows behave like a cache miss and get rebuilt
        log.warning("Ignoring unreadable %s bundle for user %s", row.get("kind"), row.get("user_id"))
        return None
    try:
        kind = BundleKind(row.get("kind"))
    except ValueError:
        return None
    return BundleRow(
        user_id=str(row.get("user_id")),
        kind=kind,
        payload=payload,
        updated_at=updated_at,
        is_stale=bool(row.get("is_stale")),
        stale_since=ensure_ts(row.get("stale_since")),
    )
