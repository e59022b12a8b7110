"""
Bounded relevance score of a candidate movie against a filter set.

The score only annotates stored recommendations, it never reorders them.
"""

import math

from moviefinder.models import Filters, MovieSummary

POPULARITY_WEIGHT = 0.3
RATING_WEIGHT = 0.4
GENRE_WEIGHT = 0.3


def _matching_genres(candidate: MovieSummary, filters: Filters) -> int:
    candidate_ids = set(candidate.genre_ids)
    candidate_names = {genre.name for genre in getattr(candidate, "genres", ()) if genre.name}
    return sum(
        1 for genre in filters.genres
        if genre.id in candidate_ids or (genre.name and genre.name in candidate_names)
    )


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def score(candidate: MovieSummary, filters: Filters) -> float:
    total = min(max(_finite(candidate.popularity), 0.0) / 100, 1.0) * POPULARITY_WEIGHT
    total += min(max(_finite(candidate.rating), 0.0) / 10, 1.0) * RATING_WEIGHT
    if filters.genres:
        total += (_matching_genres(candidate, filters) / max(len(filters.genres), 1)) * GENRE_WEIGHT
    return min(max(total, 0.0), 1.0)
