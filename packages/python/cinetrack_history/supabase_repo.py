from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
from anyio import to_thread
from cinetrack_core.errors import Conflict, Forbidden, StoreUnavailable
from cinetrack_core.types import BundleKind, InteractionRecord, RatingRecord, ensure_ts
from postgrest.exceptions import APIError as PostgrestAPIError

from .parsing import parse_bundle_row, parse_history_rows, parse_rating_rows
from .schemas import BundleRow

TABLE_TITLES = "user_titles"
TABLE_REVIEWS = "reviews"
TABLE_BUNDLES = "user_bundles"
MAX_LIMIT = 5000  # safety cap for history fetch

_HISTORY_COLUMNS = (
    "user_id, title_id, media_kind, title, poster_url, year, watched, watched_at, "
    "liked, watchlisted, genres, cast, crew, runtime_minutes, updated_at"
)


def _map_pgrest(e: PostgrestAPIError) -> Exception:
    code = getattr(e, "code", None) or ""
    # Postgres / PostgREST error codes:
    # 23505 unique_violation, 42501 insufficient_privilege (RLS), 23503 foreign_key_violation
    if code == "23505":
        return Conflict("duplicate")
    if code == "42501":
        return Forbidden("permission denied")
    if code == "23503":
        return Conflict("foreign key violation")
    return StoreUnavailable(f"store error {code or 'unknown'}")


class SupabaseHistoryStore:
    def __init__(self, client):
        self.client = client

    # ---------- Async facade ----------
    async def get_history(self, user_id: str) -> list[InteractionRecord]:
        return await to_thread.run_sync(self._get_history_sync, user_id)

    async def get_ratings(self, user_id: str) -> list[RatingRecord]:
        return await to_thread.run_sync(self._get_ratings_sync, user_id)

    async def get_bundle(self, kind: BundleKind, user_id: str) -> BundleRow | None:
        return await to_thread.run_sync(self._get_bundle_sync, kind, user_id)

    async def upsert_bundle(
        self,
        kind: BundleKind,
        user_id: str,
        payload: dict[str, Any],
        *,
        updated_at: datetime,
        generation_started: datetime | None = None,
    ) -> BundleRow:
        return await to_thread.run_sync(
            self._upsert_bundle_sync, kind, user_id, payload, updated_at, generation_started
        )

    async def delete_bundle(self, kind: BundleKind, user_id: str) -> None:
        await to_thread.run_sync(self._delete_bundle_sync, kind, user_id)

    async def mark_stale(self, kind: BundleKind, user_id: str, *, at: datetime) -> None:
        await to_thread.run_sync(self._mark_stale_sync, kind, user_id, at)

    # ---------- Private sync impls ----------
    def _execute(self, query):
        try:
            return query.execute()
        except PostgrestAPIError as e:
            raise _map_pgrest(e)
        except httpx.HTTPError as e:
            raise StoreUnavailable(f"store unreachable: {e}")

    def _get_history_sync(self, user_id: str) -> list[InteractionRecord]:
        res = self._execute(
            self.client.table(TABLE_TITLES)
            .select(_HISTORY_COLUMNS)
            .eq("user_id", user_id)
            .order("watched_at", desc=False, nullsfirst=False)
            .limit(MAX_LIMIT)
        )
        return parse_history_rows(getattr(res, "data", None) or [])

    def _get_ratings_sync(self, user_id: str) -> list[RatingRecord]:
        res = self._execute(
            self.client.table(TABLE_REVIEWS)
            .select("user_id, title_id, episode_id, rating, text, created_at")
            .eq("user_id", user_id)
            .limit(MAX_LIMIT)
        )
        return parse_rating_rows(getattr(res, "data", None) or [])

    def _get_bundle_sync(self, kind: BundleKind, user_id: str) -> BundleRow | None:
        res = self._execute(
            self.client.table(TABLE_BUNDLES)
            .select("user_id, kind, payload, updated_at, is_stale, stale_since")
            .eq("user_id", user_id)
            .eq("kind", kind.value)
            .limit(1)
        )
        rows = getattr(res, "data", None) or []
        return parse_bundle_row(rows[0]) if rows else None

    def _upsert_bundle_sync(
        self,
        kind: BundleKind,
        user_id: str,
        payload: dict[str, Any],
        updated_at: datetime,
        generation_started: datetime | None,
    ) -> BundleRow:
        row = BundleRow(user_id=user_id, kind=kind, payload=payload, updated_at=updated_at)
        # Whole-row replacement: payload, timestamp and stale flag are written together.
        # stale_since is left out so a concurrent mark_stale stamp survives the upsert.
        self._execute(
            self.client.table(TABLE_BUNDLES).upsert(
                row.model_dump(mode="json", exclude={"stale_since"}),
                on_conflict="user_id,kind",
            )
        )
        if generation_started is None:
            return row

        # re-flag when the inputs changed after this generation started reading them
        res = self._execute(
            self.client.table(TABLE_BUNDLES)
            .update({"is_stale": True})
            .eq("user_id", user_id)
            .eq("kind", kind.value)
            .gt("stale_since", generation_started.isoformat())
        )
        flagged = getattr(res, "data", None) or []
        if flagged:
            row.is_stale = True
            row.stale_since = ensure_ts(flagged[0].get("stale_since"))
        return row

    def _delete_bundle_sync(self, kind: BundleKind, user_id: str) -> None:
        self._execute(
            self.client.table(TABLE_BUNDLES)
            .delete()
            .eq("user_id", user_id)
            .eq("kind", kind.value)
        )

    def _mark_stale_sync(self, kind: BundleKind, user_id: str, at: datetime) -> None:
        self._execute(
            self.client.table(TABLE_BUNDLES)
            .update({"is_stale": True, "stale_since": at.isoformat()})
            .eq("user_id", user_id)
            .eq("kind", kind.value)
        )
