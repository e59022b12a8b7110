from datetime import datetime, timedelta, timezone
from typing import Optional

from moviefinder.errors import ErrorKind, PersistenceError, UpstreamError
from moviefinder.models import Filters, Genre, MovieDetails, MoviePage, MovieSummary

GENRES = [
    Genre(28, "Action"),
    Genre(12, "Adventure"),
    Genre(35, "Comedy"),
    Genre(18, "Drama"),
    Genre(878, "Science Fiction"),
]

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def movie(movie_id: int, genre_ids=(), rating: float = 7.0, popularity: float = 50.0) -> MovieSummary:
    return MovieSummary(
        id=movie_id,
        title=f"Movie {movie_id}",
        rating=rating,
        popularity=popularity,
        genre_ids=tuple(genre_ids),
    )


def page(movies: list[MovieSummary], page_number: int = 1) -> MoviePage:
    return MoviePage(page=page_number, total_pages=1, total_results=len(movies), movies=movies)


def details(movie_id: int, genres=(), similar=()) -> MovieDetails:
    return MovieDetails(
        id=movie_id,
        title=f"Seed {movie_id}",
        genre_ids=tuple(genre.id for genre in genres),
        genres=tuple(genres),
        similar=tuple(similar),
    )


def upstream_error(kind: ErrorKind) -> UpstreamError:
    return UpstreamError(kind, f"fake {kind.value}")


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeClient:
    """Stands in for UpstreamClient. Set an attribute to an UpstreamError to make that call fail."""

    def __init__(
        self,
        movies: Optional[dict[int, MovieDetails]] = None,
        discover: Optional[list[MovieSummary]] = None,
        popular: Optional[list[MovieSummary]] = None,
        search: Optional[list[MovieSummary]] = None,
    ):
        self.movies = movies or {}
        self.discover = discover if discover is not None else []
        self.popular = popular if popular is not None else []
        self.search = search if search is not None else []
        self.genres = list(GENRES)
        self.details_error: Optional[UpstreamError] = None
        self.discover_error: Optional[UpstreamError] = None
        self.popular_error: Optional[UpstreamError] = None
        self.discover_calls: list[tuple[Filters, int]] = []
        self.popular_calls: list[int] = []

    async def get_movie_details(self, movie_id: int) -> MovieDetails:
        if self.details_error is not None:
            raise self.details_error
        if movie_id not in self.movies:
            raise UpstreamError(ErrorKind.NOT_FOUND, "resource not found", status_code=404)
        return self.movies[movie_id]

    async def discover_movies(self, filters: Filters, page_number: int = 1) -> MoviePage:
        self.discover_calls.append((filters, page_number))
        if self.discover_error is not None:
            raise self.discover_error
        return page(list(self.discover), page_number)

    async def get_popular_movies(self, page_number: int = 1) -> MoviePage:
        self.popular_calls.append(page_number)
        if self.popular_error is not None:
            raise self.popular_error
        return page(list(self.popular), page_number)

    async def search_movies(self, query: str, page_number: int = 1, filters=None) -> MoviePage:
        return page(list(self.search), page_number)

    async def list_genres(self) -> list[Genre]:
        return list(self.genres)

    async def get_movies_by_genre(self, genre_id: int, page_number: int = 1) -> MoviePage:
        return await self.discover_movies(Filters(genres=(Genre(genre_id),)), page_number)


class FailingBackend:
    """Storage backend whose every operation fails."""

    def __getattr__(self, name):
        async def fail(*args, **kwargs):
            raise PersistenceError(f"{name}: database unavailable")
        return fail
