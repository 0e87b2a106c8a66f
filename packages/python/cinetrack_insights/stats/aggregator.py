from __future__ import annotations

from typing import Iterable, Sequence

from cinetrack_core.config import (
    STATS_CAST_PER_TITLE,
    STATS_FAVORITES,
    STATS_RECENT,
    STATS_TOP_DECADES,
    STATS_TOP_GENRES,
    STATS_TOP_PEOPLE,
)
from cinetrack_core.types import InteractionRecord, Person, RatingRecord

from .schemas import (
    DecadeStat,
    FavoriteStat,
    GenreStat,
    PeopleStat,
    RatingStat,
    RecentStat,
    StatsBundle,
    Totals,
    YearStat,
)


def _title(r: InteractionRecord) -> str:
    return r.title or f"Title {r.title_id}"


def _release_year(r: InteractionRecord) -> int | None:
    if r.year:
        return r.year
    return r.watched_at.year if r.watched_at else None


def _tally_people(people: Iterable[Person], into: dict[int, PeopleStat]) -> None:
    for p in people:
        stat = into.get(p.id)
        if stat is None:
            stat = into[p.id] = PeopleStat(id=p.id, name=p.name, count=0, profile_path=p.profile_path)
        stat.count += 1
        if not stat.profile_path and p.profile_path:
            stat.profile_path = p.profile_path


def _top(stats: list, n: int) -> list:
    # sorted() is stable: equal counts keep first-seen order
    return sorted(stats, key=lambda s: -s.count)[:n]


def compute_stats(
    history: Sequence[InteractionRecord], ratings: Sequence[RatingRecord]
) -> StatsBundle:
    """Aggregate dashboard figures from the library alone (no catalog calls)."""
    if not history and not ratings:
        return StatsBundle(ratings=[RatingStat(rating=r, count=0) for r in range(1, 6)])

    watched = [r for r in history if r.watched]
    totals = Totals(
        watched_count=len(watched),
        liked_count=sum(1 for r in history if r.liked),
        watchlist_count=sum(1 for r in history if r.watchlisted),
        total_runtime_minutes=sum(r.runtime_minutes or 0 for r in watched),
    )

    by_year: dict[int, YearStat] = {}
    by_decade: dict[str, DecadeStat] = {}
    genre_counts: dict[str, int] = {}
    for r in watched:
        runtime = r.runtime_minutes or 0
        year = _release_year(r)
        if year:
            ys = by_year.setdefault(year, YearStat(year=year, count=0, runtime_minutes=0))
            ys.count += 1
            ys.runtime_minutes += runtime
            label = f"{year // 10 * 10}s"
            ds = by_decade.setdefault(label, DecadeStat(decade=label, count=0, runtime_minutes=0))
            ds.count += 1
            ds.runtime_minutes += runtime
        for g in r.genres:
            genre_counts[g] = genre_counts.get(g, 0) + 1

    favorites = sorted(
        (r for r in history if r.liked),
        key=lambda r: r.updated_at,
        reverse=True,
    )[:STATS_FAVORITES]
    recent = sorted(
        (r for r in watched if r.watched_at is not None),
        key=lambda r: r.watched_at,
        reverse=True,
    )[:STATS_RECENT]

    actors: dict[int, PeopleStat] = {}
    directors: dict[int, PeopleStat] = {}
    for r in history:
        _tally_people(r.cast[:STATS_CAST_PER_TITLE], actors)
        _tally_people((c for c in r.crew if c.job == "Director"), directors)

    buckets = {n: 0 for n in range(1, 6)}
    for rt in ratings:
        buckets[rt.rating] += 1

    return StatsBundle(
        totals=totals,
        films_by_year=sorted(by_year.values(), key=lambda s: s.year),
        decades=_top(list(by_decade.values()), STATS_TOP_DECADES),
        genres=_top(
            [GenreStat(name=g, count=c) for g, c in genre_counts.items()],
            STATS_TOP_GENRES,
        ),
        favorites=[
            FavoriteStat(
                id=r.title_id,
                title=_title(r),
                poster_url=r.poster_url,
                year=r.year,
                updated_at=r.updated_at,
            )
            for r in favorites
        ],
        recent=[
            RecentStat(
                id=r.title_id,
                title=_title(r),
                poster_url=r.poster_url,
                watched_at=r.watched_at,
                year=r.year,
            )
            for r in recent
        ],
        actors=_top(list(actors.values()), STATS_TOP_PEOPLE),
        directors=_top(list(directors.values()), STATS_TOP_PEOPLE),
        ratings=[RatingStat(rating=n, count=c) for n, c in buckets.items()],
    )
