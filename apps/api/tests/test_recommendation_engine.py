from datetime import timedelta

import pytest

from cinetrack_catalog.genres import MOVIE_GENRE_VOCABULARY, genre_names
from cinetrack_core.errors import RuleViolation
from cinetrack_recommendation.engine import (
    RecommendationEngine,
    is_hidden_gem,
    seen_keys,
    unexplored_genres,
)
from cinetrack_recommendation.moods import DEFAULT_MOOD, MOOD_TAXONOMY

from conftest import NOW, USER_ID, make_item, make_record


@pytest.mark.parametrize(
    "rating,votes,expected",
    [
        (8.5, 500, True),
        (6.9, 500, False),
        (8.0, 5000, False),
        (7.0, 100, True),  # both lower bounds inclusive
        (9.0, 1000, True),  # both upper bounds inclusive
        (9.1, 500, False),
        (7.5, 99, False),
        (7.5, 1001, False),
    ],
)
def test_hidden_gem_bands(rating, votes, expected):
    assert is_hidden_gem(make_item(1, rating=rating, vote_count=votes)) is expected


def test_taxonomy_is_fixed_and_read_only():
    assert list(MOOD_TAXONOMY) == [
        "uplifting",
        "mind-bending",
        "dark-intense",
        "feel-good",
        "adrenaline",
        "thought-provoking",
        "classic",
    ]
    with pytest.raises(TypeError):
        MOOD_TAXONOMY["new"] = MOOD_TAXONOMY["classic"]  # type: ignore[index]


@pytest.mark.anyio
async def test_hidden_gems_post_filter_catalog_results(catalog):
    catalog.trending_items = [
        make_item("gem", rating=8.5, vote_count=500),
        make_item("blockbuster", rating=8.0, vote_count=5000),
        make_item("meh", rating=6.9, vote_count=500),
    ]
    engine = RecommendationEngine(catalog)
    result = await engine.generate(USER_ID, history=[])
    assert [it.id for it in result.hidden_gems] == ["gem"]


@pytest.mark.anyio
async def test_mood_without_qualifying_results_is_absent(catalog):
    catalog.default = [make_item("obscure", vote_count=50)]
    uplifting = MOOD_TAXONOMY["uplifting"]
    catalog.by_genre[uplifting.genre_ids] = [make_item("crowd", vote_count=300)]

    result = await RecommendationEngine(catalog).generate(USER_ID, history=[])

    assert list(result.moods) == ["uplifting"]
    assert [it.id for it in result.moods["uplifting"]] == ["crowd"]


@pytest.mark.anyio
async def test_mood_merges_genre_then_keyword_results_without_seen(catalog):
    mood = MOOD_TAXONOMY["mind-bending"]
    catalog.by_genre[mood.genre_ids] = [make_item("a"), make_item("seen"), make_item("b")]
    catalog.by_keyword[mood.keyword_ids] = [make_item("b"), make_item("c")]
    history = [make_record("seen", ["Drama"])]

    items = await RecommendationEngine(catalog).generate_mood(USER_ID, "mind-bending", history)

    assert [it.id for it in items] == ["a", "b", "c"]


@pytest.mark.anyio
async def test_unknown_mood_is_rejected(catalog):
    with pytest.raises(RuleViolation):
        await RecommendationEngine(catalog).generate_mood(USER_ID, "sleepy", [])


def test_unexplored_genres_are_vocabulary_minus_history():
    watched = [n for n in genre_names(MOVIE_GENRE_VOCABULARY) if n not in {"War", "Western"}]
    history = [make_record(i, [name]) for i, name in enumerate(watched)]
    assert unexplored_genres(history) == [10752, 37]


def test_unexplored_genres_fall_back_to_least_watched():
    names = genre_names(MOVIE_GENRE_VOCABULARY)
    history = [make_record(i, [name]) for i, name in enumerate(names)]
    history.append(make_record(99, ["Action"]))
    # Action is watched twice; the next three vocabulary genres are tied at one
    assert unexplored_genres(history) == [12, 16, 35]


def test_unexplored_genres_ignore_unwatched_records():
    history = [make_record(1, ["Action"], watched=False)]
    assert unexplored_genres(history) == list(MOVIE_GENRE_VOCABULARY[:5])


@pytest.mark.anyio
async def test_exploration_merges_dedupes_and_sorts_by_popularity(catalog):
    watched = [n for n in genre_names(MOVIE_GENRE_VOCABULARY) if n not in {"War", "Western"}]
    history = [make_record(i, [name]) for i, name in enumerate(watched)]
    catalog.by_genre[(10752,)] = [make_item("x", popularity=5), make_item("y", popularity=50)]
    catalog.by_genre[(37,)] = [make_item("y", popularity=50), make_item("z", popularity=20)]

    result = await RecommendationEngine(catalog).generate(USER_ID, history=history)

    assert [it.id for it in result.exploration] == ["y", "z", "x"]


@pytest.mark.anyio
async def test_personalized_ranks_by_taste_overlap_and_skips_seen(catalog):
    history = [
        make_record(1, ["Drama"], watched_at=NOW - timedelta(days=3)),
        make_record(2, ["Drama"], watched_at=NOW - timedelta(days=2)),
        make_record(3, ["Comedy"], watched=False, liked=True, updated_at=NOW),
    ]
    catalog.by_genre[(18, 35)] = [
        make_item("a", genre_ids=[35], rating=9.0),
        make_item("b", genre_ids=[18], rating=6.0),
        make_item("c", genre_ids=[18, 35], rating=5.0),
        make_item("1", genre_ids=[18]),
    ]
    catalog.similar_to["3"] = [make_item("e", genre_ids=[18], rating=8.0)]

    result = await RecommendationEngine(catalog).generate(USER_ID, history=history)

    assert [it.id for it in result.personalized] == ["c", "e", "b", "a"]
    assert ("similar", "3", None) in catalog.calls


@pytest.mark.anyio
async def test_personalized_seeds_are_three_latest_liked_movies(catalog):
    history = [
        make_record(i, ["Drama"], liked=True, updated_at=NOW - timedelta(days=i))
        for i in range(1, 6)
    ]
    await RecommendationEngine(catalog).generate(USER_ID, history=history)
    seeds = [c[1] for c in catalog.calls if c[0] == "similar"]
    assert seeds == ["1", "2", "3"]


@pytest.mark.anyio
async def test_no_history_is_a_normal_state(catalog):
    result = await RecommendationEngine(catalog).generate(USER_ID, history=[])
    assert result.personalized == []
    assert result.default_mood == DEFAULT_MOOD
    assert catalog.count("similar") == 0


@pytest.mark.anyio
async def test_default_mood_follows_top_genres(catalog):
    history = [make_record(i, ["Thriller", "Crime"]) for i in range(3)]
    result = await RecommendationEngine(catalog).generate(USER_ID, history=history)
    assert result.default_mood == "dark-intense"


def test_default_mood_without_overlap_falls_back(catalog):
    history = [make_record(1, ["Made Up Genre"])]
    assert RecommendationEngine(catalog).default_mood(history) == DEFAULT_MOOD


@pytest.mark.anyio
async def test_failed_sub_generation_degrades_to_empty(catalog):
    catalog.failing = {"trending"}
    mood = MOOD_TAXONOMY["adrenaline"]
    catalog.by_genre[mood.genre_ids] = [make_item("fast", vote_count=400)]

    result = await RecommendationEngine(catalog).generate(USER_ID, history=[])

    assert result.hidden_gems == []
    assert [it.id for it in result.moods["adrenaline"]] == ["fast"]


@pytest.mark.anyio
async def test_lists_are_capped(catalog):
    catalog.trending_items = [make_item(i, rating=8.0, vote_count=500) for i in range(30)]
    result = await RecommendationEngine(catalog, limit=5).generate(USER_ID, history=[])
    assert len(result.hidden_gems) == 5


@pytest.mark.anyio
async def test_generate_reads_history_from_store(catalog, store):
    store.history[USER_ID] = [make_record("10", ["Drama"])]
    catalog.trending_items = [make_item("10", rating=8.0), make_item("11", rating=8.0)]

    result = await RecommendationEngine(catalog, store).generate(USER_ID)

    assert [it.id for it in result.hidden_gems] == ["11"]


def test_seen_keys_cover_every_library_row():
    history = [make_record(1, watched=False, watchlisted=True), make_record(2)]
    assert {k[1] for k in seen_keys(history)} == {"1", "2"}
