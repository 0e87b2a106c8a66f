"""TMDB genre vocabulary.

Library rows store genre *names*; TMDB discover queries want *ids*. The
movie vocabulary below is the global set exploration works against (TV-only
genres and "TV Movie" are excluded since they do not appear in movie
discover results).
"""

from types import MappingProxyType
from typing import Iterable, Mapping

GENRE_NAMES: Mapping[int, str] = MappingProxyType(
    {
        28: "Action",
        12: "Adventure",
        16: "Animation",
        35: "Comedy",
        80: "Crime",
        99: "Documentary",
        18: "Drama",
        10751: "Family",
        14: "Fantasy",
        36: "History",
        27: "Horror",
        10402: "Music",
        9648: "Mystery",
        10749: "Romance",
        878: "Science Fiction",
        10770: "TV Movie",
        53: "Thriller",
        10752: "War",
        37: "Western",
        10759: "Action & Adventure",
        10762: "Kids",
        10763: "News",
        10764: "Reality",
        10765: "Sci-Fi & Fantasy",
        10766: "Soap",
        10767: "Talk",
        10768: "War & Politics",
    }
)

GENRE_IDS: Mapping[str, int] = MappingProxyType(
    {name.lower(): gid for gid, name in GENRE_NAMES.items()}
)

MOVIE_GENRE_VOCABULARY: tuple[int, ...] = (
    28, 12, 16, 35, 80, 99, 18, 10751, 14, 36, 27, 10402, 9648, 10749, 878, 53, 10752, 37,
)


def genre_id(name: str) -> int | None:
    return GENRE_IDS.get(name.strip().lower())


def genre_ids(names: Iterable[str]) -> list[int]:
    """Map names to ids, dropping unknown names and duplicates (order kept)."""
    out: list[int] = []
    for n in names:
        gid = genre_id(n)
        if gid is not None and gid not in out:
            out.append(gid)
    return out


def genre_names(ids: Iterable[int]) -> list[str]:
    return [GENRE_NAMES[i] for i in ids if i in GENRE_NAMES]
