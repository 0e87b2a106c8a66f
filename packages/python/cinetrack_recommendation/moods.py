"""Static mood taxonomy.

Each mood is backed by a fixed TMDB genre/keyword tag set; nothing here is
derived per user. The table is read-only and handed to the engine at
construction time.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from cinetrack_catalog.base import DiscoverFilters

DEFAULT_MOOD = "uplifting"


@dataclass(frozen=True)
class Mood:
    id: str
    label: str
    genre_ids: tuple[int, ...]
    keyword_ids: tuple[int, ...] = ()
    filters: DiscoverFilters = field(default_factory=DiscoverFilters)


def _taxonomy(*moods: Mood) -> Mapping[str, Mood]:
    return MappingProxyType({m.id: m for m in moods})


MOOD_TAXONOMY: Mapping[str, Mood] = _taxonomy(
    Mood(
        id="uplifting",
        label="Uplifting",
        genre_ids=(35, 10751, 10402),
        keyword_ids=(9799, 6054),  # romantic comedy, friendship
    ),
    Mood(
        id="mind-bending",
        label="Mind-Bending",
        genre_ids=(878, 9648),
        keyword_ids=(4379, 310),  # time travel, artificial intelligence
    ),
    Mood(
        id="dark-intense",
        label="Dark & Intense",
        genre_ids=(53, 80, 27),
        keyword_ids=(10714, 12565),  # serial killer, psychological thriller
    ),
    Mood(
        id="feel-good",
        label="Feel-Good",
        genre_ids=(35, 10749, 16),
        keyword_ids=(180547,),  # feel-good
    ),
    Mood(
        id="adrenaline",
        label="Adrenaline",
        genre_ids=(28, 12),
        keyword_ids=(9748, 10051),  # revenge, heist
    ),
    Mood(
        id="thought-provoking",
        label="Thought-Provoking",
        genre_ids=(18, 99, 36),
        keyword_ids=(818,),  # based on novel or book
    ),
    Mood(
        id="classic",
        label="Classic",
        genre_ids=(18, 10749, 37, 10752),
        filters=DiscoverFilters(
            released_before="2000-12-31", min_rating=7.5, sort_by="vote_count.desc"
        ),
    ),
)
