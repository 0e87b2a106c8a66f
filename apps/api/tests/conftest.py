import asyncio
from typing import Any, Dict, List
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from cinetrack_core.errors import StoreUnavailable
from cinetrack_core.types import (
    BundleKind,
    CatalogItem,
    InteractionRecord,
    MediaKind,
    RatingRecord,
)
from cinetrack_history.schemas import BundleRow

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
USER_ID = "00000000-0000-0000-0000-000000000000"


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ---------- factories ----------


def make_record(title_id, genres=(), *, watched=True, watched_at=None, **kw) -> InteractionRecord:
    data = dict(
        user_id=USER_ID,
        title_id=str(title_id),
        title=f"Title {title_id}",
        genres=list(genres),
        watched=watched,
        watched_at=watched_at,
        updated_at=kw.pop("updated_at", watched_at or NOW),
    )
    data.update(kw)
    return InteractionRecord(**data)


def make_rating(rating: int, n: int = 0, **kw) -> RatingRecord:
    data = dict(
        user_id=USER_ID,
        title_id=str(1000 + n),
        rating=rating,
        created_at=NOW - timedelta(days=n),
    )
    data.update(kw)
    return RatingRecord(**data)


def make_item(id, *, rating=7.5, vote_count=500, popularity=10.0, genre_ids=(), **kw) -> CatalogItem:
    return CatalogItem(
        id=str(id),
        title=kw.pop("title", f"Item {id}"),
        rating=rating,
        vote_count=vote_count,
        popularity=popularity,
        genre_ids=list(genre_ids),
        **kw,
    )


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw) -> None:
        self.now = self.now + timedelta(**kw)


# ---------- HistoryStore ----------


class InMemoryHistoryStore:
    """HistoryStore double. Upserts replace whole rows, like the relational upsert."""

    def __init__(self):
        self.history: Dict[str, List[InteractionRecord]] = {}
        self.ratings: Dict[str, List[RatingRecord]] = {}
        self.bundles: Dict[tuple, BundleRow] = {}
        self.upserts: List[tuple] = []
        self.fail_reads = False
        self.upsert_error: Exception | None = None

    def _check_read(self):
        if self.fail_reads:
            raise StoreUnavailable("store error unknown")

    async def get_history(self, user_id):
        self._check_read()
        return list(self.history.get(user_id, []))

    async def get_ratings(self, user_id):
        self._check_read()
        return list(self.ratings.get(user_id, []))

    async def get_bundle(self, kind, user_id):
        self._check_read()
        row = self.bundles.get((kind, user_id))
        return row.model_copy(deep=True) if row else None

    async def upsert_bundle(self, kind, user_id, payload, *, updated_at, generation_started=None):
        if self.upsert_error is not None:
            raise self.upsert_error
        prev = self.bundles.get((kind, user_id))
        stale_since = prev.stale_since if prev else None
        row = BundleRow(
            user_id=user_id,
            kind=kind,
            payload=payload,
            updated_at=updated_at,
            is_stale=bool(
                generation_started and stale_since and stale_since > generation_started
            ),
            stale_since=stale_since,
        )
        self.bundles[(kind, user_id)] = row
        self.upserts.append((kind, user_id))
        return row

    async def delete_bundle(self, kind, user_id):
        self.bundles.pop((kind, user_id), None)

    async def mark_stale(self, kind, user_id, *, at):
        row = self.bundles.get((kind, user_id))
        if row is not None:
            row.is_stale = True
            row.stale_since = at


# ---------- CatalogClient ----------


class FakeCatalog:
    """Scripted CatalogClient: results keyed by call, every call recorded."""

    def __init__(self):
        self.by_genre: Dict[tuple, List[CatalogItem]] = {}
        self.by_keyword: Dict[tuple, List[CatalogItem]] = {}
        self.similar_to: Dict[str, List[CatalogItem]] = {}
        self.trending_items: List[CatalogItem] = []
        self.default: List[CatalogItem] = []
        self.calls: List[tuple] = []
        self.failing: set = set()
        # set a gate to hold trending() open mid-generation
        self.trending_gate: asyncio.Event | None = None
        self.trending_entered = asyncio.Event()

    def _maybe_fail(self, name):
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    async def discover_by_genres(self, genre_ids, filters=None):
        self.calls.append(("genres", tuple(genre_ids), filters))
        self._maybe_fail("genres")
        return list(self.by_genre.get(tuple(genre_ids), self.default))

    async def discover_by_keywords(self, keyword_ids, filters=None):
        self.calls.append(("keywords", tuple(keyword_ids), filters))
        self._maybe_fail("keywords")
        return list(self.by_keyword.get(tuple(keyword_ids), []))

    async def similar(self, title_id):
        self.calls.append(("similar", title_id, None))
        self._maybe_fail("similar")
        return list(self.similar_to.get(title_id, []))

    async def trending(self):
        self.calls.append(("trending", (), None))
        self.trending_entered.set()
        if self.trending_gate is not None:
            await self.trending_gate.wait()
        self._maybe_fail("trending")
        return list(self.trending_items)

    def count(self, name) -> int:
        return sum(1 for c in self.calls if c[0] == name)


# ---------- Redis ----------


class FakeRedis:
    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("redis down")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None, nx=False):
        self._check()
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, key):
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0


# ---------- Supabase ----------


class _Resp:
    def __init__(self, data):
        self.data = data


class _FakeQuery:
    def __init__(self, client: "FakeSupabaseClient", table: str):
        self._client = client
        self._table = table
        self.ops: List[tuple] = []

    def _op(self, *op):
        self.ops.append(op)
        return self

    def select(self, cols: str = "*"):
        return self._op("select", cols)

    def eq(self, col, value):
        return self._op("eq", col, value)

    def order(self, col, desc=False, nullsfirst=False):
        return self._op("order", col, desc)

    def limit(self, n):
        return self._op("limit", n)

    def upsert(self, row, on_conflict: str = ""):
        return self._op("upsert", row, on_conflict)

    def update(self, values):
        return self._op("update", values)

    def gt(self, col, value):
        return self._op("gt", col, value)

    def delete(self):
        return self._op("delete")

    def execute(self):
        self._client.executed.append((self._table, self.ops))
        if self._client.error is not None:
            raise self._client.error
        return _Resp(self._client.rows.get(self._table, []))


class FakeSupabaseClient:
    def __init__(self):
        self.rows: Dict[str, List[Dict[str, Any]]] = {}
        self.executed: List[tuple] = []
        self.error: Exception | None = None

    def table(self, name: str):
        # Return a new chain object per call to keep state separate
        return _FakeQuery(self, name)


# ---------- fixtures ----------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryHistoryStore()


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture()
def test_client(store, catalog):
    from app.main import Settings, app  # type: ignore
    from app.deps.deps import get_catalog, get_refresh_queue, get_settings
    from app.deps.deps_cache import get_history_store
    from app.deps.supabase_client import get_current_user_id
    from cinetrack_cache.refresh_queue import RefreshQueue

    settings = Settings(tmdb_api_key="test", supabase_url="http://sb.test", supabase_api_key="anon")
    queue = RefreshQueue()

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_current_user_id] = lambda: USER_ID
    app.dependency_overrides[get_history_store] = lambda: store
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_refresh_queue] = lambda: queue

    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
