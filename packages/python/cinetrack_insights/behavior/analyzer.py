"""
Behavioral metrics derived from a user's library and ratings.

Everything here is pure: callers pass the history (in store order) and the
ratings, plus ``now`` for the velocity window, and persist the result
themselves.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Sequence

import numpy as np
from cinetrack_core.config import (
    BINGE_DAILY_THRESHOLD,
    BINGE_USER_RATIO,
    EXPECTED_GENRES_PER_TITLE,
    MIN_RATINGS_FOR_CONSISTENCY,
    NEUTRAL_SCORE,
    VELOCITY_WINDOW_DAYS,
)
from cinetrack_core.types import InteractionRecord, RatingRecord

from .schemas import (
    BehaviorProfile,
    BingePatterns,
    GenreProgression,
    TemporalPatterns,
)


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def _watched(history: Sequence[InteractionRecord]) -> list[InteractionRecord]:
    return [r for r in history if r.watched]


def watching_velocity(history: Sequence[InteractionRecord], now: datetime) -> float:
    """Watched titles per week over the trailing window; undated watches are ignored."""
    recent = 0
    for r in _watched(history):
        if r.watched_at is None:
            continue
        days_since = (now - r.watched_at).total_seconds() / 86400.0
        if days_since <= VELOCITY_WINDOW_DAYS:
            recent += 1
    return recent / (VELOCITY_WINDOW_DAYS / 7)


def exploration_score(history: Sequence[InteractionRecord]) -> float:
    watched = _watched(history)
    if not watched:
        return NEUTRAL_SCORE
    genres = {g for r in watched for g in r.genres}
    return _clamp01(len(genres) / (len(watched) * EXPECTED_GENRES_PER_TITLE))


def consistency_score(ratings: Sequence[RatingRecord]) -> float:
    # Too few ratings to say anything about taste stability
    if len(ratings) < MIN_RATINGS_FOR_CONSISTENCY:
        return NEUTRAL_SCORE
    std_dev = float(np.std([r.rating for r in ratings]))
    return _clamp01(1 - std_dev / 2)


def temporal_patterns(history: Sequence[InteractionRecord]) -> TemporalPatterns:
    out = TemporalPatterns()
    for r in _watched(history):
        if r.watched_at is None:
            continue
        ts = r.watched_at.astimezone(timezone.utc)
        out.hour_histogram[ts.hour] += 1
        out.day_of_week_histogram[ts.isoweekday() % 7] += 1
    return out


def binge_patterns(history: Sequence[InteractionRecord]) -> BingePatterns:
    """
    Count days on which the user watched at least BINGE_DAILY_THRESHOLD titles.

    Dated watches are walked in time order; a day is counted once, when its
    running counter reaches the threshold. Undated watches are skipped without
    resetting the counter but still count toward the total.
    """
    watched = _watched(history)
    total = len(watched)
    if total == 0:
        return BingePatterns()

    dated = sorted(
        (r for r in watched if r.watched_at is not None),
        key=lambda r: r.watched_at,
    )
    binge_days = 0
    current_day = None
    daily = 0
    for r in dated:
        day = r.watched_at.astimezone(timezone.utc).date()
        if day == current_day:
            daily += 1
        else:
            current_day = day
            daily = 1
        if daily == BINGE_DAILY_THRESHOLD:
            binge_days += 1

    return BingePatterns(
        is_binger=binge_days > BINGE_USER_RATIO * total,
        binge_frequency=binge_days / total,
        binge_days=binge_days,
    )


def rating_distribution(ratings: Sequence[RatingRecord]) -> dict[int, int]:
    dist = {r: 0 for r in range(1, 6)}
    for r in ratings:
        dist[r.rating] += 1
    return dist


def genre_progression(history: Sequence[InteractionRecord]) -> GenreProgression:
    """Genre tallies of the first vs. last quarter of the history (by position)."""
    quarter = len(history) // 4
    if quarter == 0:
        return GenreProgression()
    early = Counter(g for r in history[:quarter] for g in r.genres)
    recent = Counter(g for r in history[len(history) - quarter:] for g in r.genres)
    return GenreProgression(early_genres=dict(early), recent_genres=dict(recent))


def compute_profile(
    user_id: str,
    history: Sequence[InteractionRecord],
    ratings: Sequence[RatingRecord],
    *,
    now: datetime | None = None,
) -> BehaviorProfile:
    now = now or datetime.now(timezone.utc)
    return BehaviorProfile(
        user_id=user_id,
        watching_velocity=watching_velocity(history, now),
        exploration_score=exploration_score(history),
        consistency_score=consistency_score(ratings),
        temporal_patterns=temporal_patterns(history),
        binge_patterns=binge_patterns(history),
        rating_distribution=rating_distribution(ratings),
        genre_progression=genre_progression(history),
        computed_at=now,
    )
