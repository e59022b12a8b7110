"""
Data models and types.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

MAX_QUERY_LENGTH = 100
MAX_STORED_RESULTS = 20
MAX_CAST = 10
MAX_CREW = 5
MAX_SIMILAR = 12
MAX_VIDEOS = 3


class SearchInteraction(str, Enum):
    CLICKED_MOVIES = "clickedMovies"
    VIEWED_DETAILS = "viewedDetails"
    REQUESTED_RECOMMENDATIONS = "requestedRecommendations"


class FeedbackType(str, Enum):
    LIKED = "liked"
    DISLIKED = "disliked"
    CLICKED = "clicked"


class RecommendationType(str, Enum):
    SIMILAR = "similar"
    GENRE_BASED = "genre-based"
    CAST_BASED = "cast-based"
    USER_PREFERENCE = "user-preference"
    POPULAR_FALLBACK = "popular-fallback"


@dataclass(frozen=True)
class Genre:
    id: int
    name: str = ""


@dataclass(frozen=True)
class CastMember:
    person_id: int
    name: str
    character: Optional[str] = None
    profile_path: Optional[str] = None


@dataclass(frozen=True)
class CrewMember:
    person_id: int
    name: str
    job: Optional[str] = None
    department: Optional[str] = None
    profile_path: Optional[str] = None


@dataclass(frozen=True)
class Video:
    key: str
    name: str
    site: str
    type: Optional[str] = None


@dataclass(frozen=True)
class MovieSummary:
    id: int
    title: str
    overview: str = ""
    release_date: Optional[date] = None
    rating: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    genre_ids: tuple[int, ...] = ()
    adult: bool = False
    original_language: Optional[str] = None
    original_title: Optional[str] = None


@dataclass(frozen=True)
class MovieDetails(MovieSummary):
    genres: tuple[Genre, ...] = ()
    runtime: Optional[int] = None
    tagline: Optional[str] = None
    homepage: Optional[str] = None
    status: Optional[str] = None
    imdb_id: Optional[str] = None
    budget: int = 0
    revenue: int = 0
    cast: tuple[CastMember, ...] = ()
    crew: tuple[CrewMember, ...] = ()
    director: Optional[str] = None
    similar: tuple[MovieSummary, ...] = ()
    keywords: tuple[str, ...] = ()
    videos: tuple[Video, ...] = ()


@dataclass(frozen=True)
class KnownFor:
    id: int
    title: Optional[str]
    media_type: Optional[str] = None
    poster_path: Optional[str] = None
    release_date: Optional[date] = None


@dataclass(frozen=True)
class PersonSummary:
    id: int
    name: str
    popularity: float = 0.0
    profile_path: Optional[str] = None
    known_for_department: Optional[str] = None
    known_for: tuple[KnownFor, ...] = ()


@dataclass(frozen=True)
class CrewCredit:
    movie: MovieSummary
    job: Optional[str] = None
    department: Optional[str] = None


@dataclass(frozen=True)
class PersonDetails:
    id: int
    name: str
    biography: str = ""
    birthday: Optional[date] = None
    deathday: Optional[date] = None
    place_of_birth: Optional[str] = None
    popularity: float = 0.0
    profile_path: Optional[str] = None
    known_for_department: Optional[str] = None
    cast_credits: tuple[MovieSummary, ...] = ()
    crew_credits: tuple[CrewCredit, ...] = ()


@dataclass(frozen=True)
class MoviePage:
    page: int
    total_pages: int
    total_results: int
    movies: list[MovieSummary]


@dataclass(frozen=True)
class PersonPage:
    page: int
    total_pages: int
    total_results: int
    people: list[PersonSummary]


@dataclass(frozen=True)
class Filters:
    genres: tuple[Genre, ...] = ()
    match_any_genre: bool = False
    year: Optional[int] = None
    min_rating: Optional[float] = None
    max_rating: Optional[float] = None
    min_votes: Optional[int] = None
    cast: tuple[int, ...] = ()
    keywords: tuple[int, ...] = ()
    language: Optional[str] = None
    release_date_from: Optional[date] = None
    release_date_to: Optional[date] = None
    sort_by: str = "popularity.desc"
    include_adult: bool = False
    region: Optional[str] = None

    @property
    def genre_ids(self) -> list[int]:
        return [genre.id for genre in self.genres]


@dataclass(frozen=True)
class ScoredMovie:
    movie: MovieSummary
    similarity: float


def _empty_sets(kinds) -> dict:
    return {kind: [] for kind in kinds}


def add_unique(ids: list[int], movie_id: int) -> bool:
    """Append `movie_id` unless already present. Returns whether the list changed."""
    if movie_id in ids:
        return False
    ids.append(movie_id)
    return True


@dataclass
class SearchHistoryRecord:
    session_id: str
    search_query: str
    filters: Filters
    total_results: int
    results: list[MovieSummary]
    created_at: datetime
    interaction: dict[SearchInteraction, list[int]] = field(
        default_factory=lambda: _empty_sets(SearchInteraction)
    )
    record_id: Optional[int] = None

    @property
    def result_movie_ids(self) -> list[int]:
        return [movie.id for movie in self.results]


@dataclass
class RecommendationRecord:
    session_id: str
    based_on_movie_id: int
    based_on_movie_title: Optional[str]
    recommendation_type: RecommendationType
    recommendations: list[ScoredMovie]
    filters: Filters
    created_at: datetime
    user_feedback: dict[FeedbackType, list[int]] = field(
        default_factory=lambda: _empty_sets(FeedbackType)
    )
    record_id: Optional[int] = None


@dataclass(frozen=True)
class GenreCount:
    name: str
    count: int


@dataclass(frozen=True)
class KeywordCount:
    word: str
    count: int


@dataclass(frozen=True)
class UserPreferenceProfile:
    total_searches: int
    top_genres: list[GenreCount]
    top_keywords: list[KeywordCount]
    average_rating_floor: float
    last_updated: datetime


@dataclass(frozen=True)
class BasedOn:
    movie_id: int
    movie_title: Optional[str]
    recommendation_type: RecommendationType
    genres: tuple[Genre, ...] = ()


@dataclass(frozen=True)
class Recommendations:
    page: int
    total_pages: int
    total_results: int
    movies: list[MovieSummary]
    based_on: BasedOn
