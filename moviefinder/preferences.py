"""
Reduction of a session's search history into a preference profile.
"""

from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from moviefinder.models import (GenreCount, KeywordCount, SearchHistoryRecord,
                                UserPreferenceProfile)

HISTORY_WINDOW = 20
MIN_SEARCHES = 3
TOP_GENRES = 5
TOP_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 3
DEFAULT_RATING_FLOOR = 6.0


def keywords(query: str) -> list[str]:
    return [word for word in query.lower().split() if len(word) >= MIN_KEYWORD_LENGTH]


def aggregate_preferences(
    records: Iterable[SearchHistoryRecord], now: datetime
) -> Optional[UserPreferenceProfile]:
    """
    Fold the newest-first search records of a session into a profile.

    Only the first `HISTORY_WINDOW` records are used. Returns None when the
    session has fewer than `MIN_SEARCHES` records. Counter preserves first
    insertion order, so ties keep first-seen order.
    """
    window = list(records)[:HISTORY_WINDOW]
    if len(window) < MIN_SEARCHES:
        return None

    genre_counts = Counter(
        genre.name for record in window for genre in record.filters.genres if genre.name
    )
    keyword_counts = Counter(word for record in window for word in keywords(record.search_query))
    rating_floors = [
        record.filters.min_rating for record in window if record.filters.min_rating is not None
    ]
    average_rating_floor = (
        sum(rating_floors) / len(rating_floors) if rating_floors else DEFAULT_RATING_FLOOR
    )

    return UserPreferenceProfile(
        total_searches=len(window),
        top_genres=[GenreCount(name, count) for name, count in genre_counts.most_common(TOP_GENRES)],
        top_keywords=[
            KeywordCount(word, count) for word, count in keyword_counts.most_common(TOP_KEYWORDS)
        ],
        average_rating_floor=average_rating_floor,
        last_updated=now,
    )
