from datetime import datetime
from typing import Any

from cinetrack_core.types import BundleKind
from pydantic import BaseModel, Field


class BundleRow(BaseModel):
    """One cached bundle row, keyed by (user_id, kind). Replaced wholesale on upsert.

    ``stale_since`` is stamped by ``mark_stale`` and is not part of the upserted
    row; it lets a regeneration tell whether the flag was raised after it began.
    """

    user_id: str
    kind: BundleKind
    payload: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime
    is_stale: bool = False
    stale_since: datetime | None = None
