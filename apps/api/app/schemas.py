from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, model_validator

from cinetrack_cache.events import STALE_KINDS_BY_EVENT
from cinetrack_core.types import BundleKind


class MarkStaleRequest(BaseModel):
    """Either explicit bundle kinds, or a write-path event name mapped to its kinds."""

    kinds: List[BundleKind] = Field(default_factory=list)
    event: str | None = None

    @model_validator(mode="after")
    def _check(self):
        if self.event is not None and self.event not in STALE_KINDS_BY_EVENT:
            raise ValueError(f"unknown event: {self.event}")
        if self.event is None and not self.kinds:
            self.kinds = list(BundleKind)
        return self


class MarkStaleResponse(BaseModel):
    user_id: str
    kinds: List[BundleKind]


class InvalidateResponse(BaseModel):
    user_id: str
    deleted: List[BundleKind]
