from datetime import timedelta, timezone

import httpx
import pytest
from postgrest.exceptions import APIError as PostgrestAPIError
from pydantic import ValidationError

from cinetrack_core.errors import Conflict, Forbidden, StoreUnavailable
from cinetrack_core.types import BundleKind, RatingRecord
from cinetrack_history.parsing import parse_bundle_row, parse_history_rows, parse_rating_rows
from cinetrack_history.supabase_repo import SupabaseHistoryStore

from conftest import NOW, USER_ID, FakeSupabaseClient

LIBRARY_ROW = {
    "user_id": USER_ID,
    "title_id": 603,
    "media_kind": "movie",
    "title": "The Matrix",
    "watched": True,
    "watched_at": "2024-05-01T20:00:00Z",
    "liked": True,
    "genres": '["Action", "Science Fiction"]',
    "cast": '[{"id": 6384, "name": "Keanu Reeves"}, {"name": "missing id"}]',
    "crew": [{"id": 9339, "name": "Lana Wachowski", "job": "Director"}],
    "runtime_minutes": 136,
    "updated_at": "2024-05-01T20:00:00+00:00",
}


# ---------- parsing ----------


def test_library_row_is_coerced_into_a_record():
    [record] = parse_history_rows([LIBRARY_ROW])
    assert record.title_id == "603"
    assert record.genres == ["Action", "Science Fiction"]
    assert [p.name for p in record.cast] == ["Keanu Reeves"]
    assert record.crew[0].job == "Director"
    assert record.watched_at.tzinfo == timezone.utc


def test_malformed_rows_are_skipped():
    bad = {**LIBRARY_ROW, "updated_at": None}
    assert parse_history_rows([bad, LIBRARY_ROW]) == parse_history_rows([LIBRARY_ROW])


def test_rating_needs_exactly_one_subject():
    ok = {"user_id": USER_ID, "title_id": 1, "rating": 4, "created_at": "2024-05-01T00:00:00Z"}
    both = {**ok, "episode_id": "e1"}
    neither = {**ok, "title_id": None}
    out_of_range = {**ok, "rating": 6}
    assert len(parse_rating_rows([ok, both, neither, out_of_range])) == 1
    with pytest.raises(ValidationError):
        RatingRecord.model_validate(both)


def test_bundle_row_without_timestamp_is_a_miss():
    assert parse_bundle_row({"user_id": USER_ID, "kind": "stats", "payload": {}}) is None
    assert parse_bundle_row(
        {"user_id": USER_ID, "kind": "nope", "payload": {}, "updated_at": NOW.isoformat()}
    ) is None
    row = parse_bundle_row(
        {"user_id": USER_ID, "kind": "stats", "payload": {"a": 1}, "updated_at": NOW.isoformat(), "is_stale": True}
    )
    assert row.kind == BundleKind.STATS and row.is_stale is True and row.updated_at == NOW


# ---------- Supabase repository ----------


@pytest.mark.anyio
async def test_get_history_queries_user_titles_in_watch_order():
    client = FakeSupabaseClient()
    client.rows["user_titles"] = [LIBRARY_ROW]
    store = SupabaseHistoryStore(client)

    history = await store.get_history(USER_ID)

    assert [r.title_id for r in history] == ["603"]
    table, ops = client.executed[0]
    assert table == "user_titles"
    assert ("eq", "user_id", USER_ID) in ops
    assert ("order", "watched_at", False) in ops


@pytest.mark.anyio
async def test_upsert_replaces_whole_row():
    client = FakeSupabaseClient()
    store = SupabaseHistoryStore(client)

    row = await store.upsert_bundle(BundleKind.RECOMMENDATIONS, USER_ID, {"moods": {}}, updated_at=NOW)

    assert row.is_stale is False
    table, ops = client.executed[0]
    assert table == "user_bundles"
    op, written, on_conflict = ops[0]
    assert op == "upsert" and on_conflict == "user_id,kind"
    assert written == {
        "user_id": USER_ID,
        "kind": "recommendations",
        "payload": {"moods": {}},
        "updated_at": NOW.isoformat().replace("+00:00", "Z"),
        "is_stale": False,
    }


@pytest.mark.anyio
async def test_mark_stale_flips_the_flag_and_stamps_it():
    client = FakeSupabaseClient()
    await SupabaseHistoryStore(client).mark_stale(BundleKind.STATS, USER_ID, at=NOW)
    _, ops = client.executed[0]
    assert ops == [
        ("update", {"is_stale": True, "stale_since": NOW.isoformat()}),
        ("eq", "user_id", USER_ID),
        ("eq", "kind", "stats"),
    ]


@pytest.mark.anyio
async def test_upsert_reflags_row_marked_after_generation_started():
    client = FakeSupabaseClient()
    later = NOW + timedelta(seconds=5)
    client.rows["user_bundles"] = [{"user_id": USER_ID, "stale_since": later.isoformat()}]
    store = SupabaseHistoryStore(client)

    row = await store.upsert_bundle(
        BundleKind.RECOMMENDATIONS, USER_ID, {}, updated_at=NOW, generation_started=NOW
    )

    assert row.is_stale is True
    assert row.stale_since == later
    (_, upsert_ops), (_, reflag_ops) = client.executed
    assert "stale_since" not in upsert_ops[0][1]
    assert reflag_ops == [
        ("update", {"is_stale": True}),
        ("eq", "user_id", USER_ID),
        ("eq", "kind", "recommendations"),
        ("gt", "stale_since", NOW.isoformat()),
    ]


@pytest.mark.anyio
async def test_upsert_without_later_mark_stays_fresh():
    client = FakeSupabaseClient()
    row = await SupabaseHistoryStore(client).upsert_bundle(
        BundleKind.BEHAVIOR, USER_ID, {}, updated_at=NOW, generation_started=NOW
    )
    assert row.is_stale is False
    assert len(client.executed) == 2


@pytest.mark.anyio
async def test_get_bundle_missing_returns_none():
    client = FakeSupabaseClient()
    assert await SupabaseHistoryStore(client).get_bundle(BundleKind.BEHAVIOR, USER_ID) is None


@pytest.mark.anyio
@pytest.mark.parametrize(
    "code,expected",
    [
        ("23505", Conflict),
        ("23503", Conflict),
        ("42501", Forbidden),
        ("PGRST000", StoreUnavailable),
    ],
)
async def test_postgrest_errors_are_mapped(code, expected):
    client = FakeSupabaseClient()
    client.error = PostgrestAPIError({"message": "failed", "code": code, "hint": None, "details": None})
    with pytest.raises(expected):
        await SupabaseHistoryStore(client).upsert_bundle(
            BundleKind.STATS, USER_ID, {}, updated_at=NOW
        )


@pytest.mark.anyio
async def test_network_errors_are_store_unavailable():
    client = FakeSupabaseClient()
    client.error = httpx.ConnectError("unreachable")
    with pytest.raises(StoreUnavailable):
        await SupabaseHistoryStore(client).get_ratings(USER_ID)
