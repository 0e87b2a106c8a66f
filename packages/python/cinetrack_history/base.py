from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from cinetrack_core.types import BundleKind, InteractionRecord, RatingRecord

from .schemas import BundleRow


class HistoryStore(Protocol):
    """Relational store for library rows, ratings and the derived bundle cache.

    Reads and writes raise ``StoreUnavailable`` when the store cannot be
    reached; a bundle write for a user that no longer exists raises
    ``Conflict``.

    ``upsert_bundle`` with ``generation_started`` keeps the row flagged stale
    when ``mark_stale`` stamped it after that instant, so a regeneration that
    read its inputs before a mutation never clears the mutation's flag.
    """

    async def get_history(self, user_id: str) -> list[InteractionRecord]: ...

    async def get_ratings(self, user_id: str) -> list[RatingRecord]: ...

    async def get_bundle(self, kind: BundleKind, user_id: str) -> BundleRow | None: ...

    async def upsert_bundle(
        self,
        kind: BundleKind,
        user_id: str,
        payload: dict[str, Any],
        *,
        updated_at: datetime,
        generation_started: datetime | None = None,
    ) -> BundleRow: ...

    async def delete_bundle(self, kind: BundleKind, user_id: str) -> None: ...

    async def mark_stale(self, kind: BundleKind, user_id: str, *, at: datetime) -> None: ...
