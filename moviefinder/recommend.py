"""
Tiered recommendation engine.

Tiers are tried in order and the first one producing movies wins:
provider-similar, personalized discovery, genre discovery, popular listing.
A failing tier counts as producing nothing, except for invalid credentials.
"""

from typing import Awaitable, Optional

from aiocache import cached

from moviefinder.errors import ErrorKind, SeedNotFound, UpstreamError
from moviefinder.interactions import InteractionStore
from moviefinder.logger import logger
from moviefinder.models import (MAX_SIMILAR, BasedOn, Filters, Genre,
                                MovieDetails, MoviePage, MovieSummary,
                                RecommendationType, Recommendations,
                                UserPreferenceProfile)
from moviefinder.preferences import MIN_SEARCHES
from moviefinder.utils import timed

SEED_GENRES = 2
MIN_RATING = 6.0
MIN_VOTES = 100
GENRE_CACHE_TTL = 3600


def _exclude(movies: list[MovieSummary], excluded: set[int]) -> list[MovieSummary]:
    return [movie for movie in movies if movie.id not in excluded]


def _merge_genres(*groups) -> tuple[Genre, ...]:
    merged = {}
    for group in groups:
        for genre in group:
            merged.setdefault(genre.id, genre)
    return tuple(merged.values())


@cached(ttl=GENRE_CACHE_TTL)
async def fetch_genre_catalog(client) -> dict[str, Genre]:
    genres = await client.list_genres()
    logger.info(f"loaded {len(genres)} genres from the provider")
    return {genre.name.lower(): genre for genre in genres if genre.name}


class RecommendationEngine:
    def __init__(self, client, store: Optional[InteractionStore] = None):
        self.client = client
        self.store = store

    async def _tier(self, name: str, operation: Awaitable) -> Optional[Recommendations]:
        try:
            return await operation
        except UpstreamError as exc:
            if exc.fatal:
                raise
            logger.warning(f"{name} tier produced nothing: {exc!r}")
            return None

    async def _fetch_seed(self, movie_id: int) -> Optional[MovieDetails]:
        try:
            return await self.client.get_movie_details(movie_id)
        except UpstreamError as exc:
            if exc.kind is ErrorKind.NOT_FOUND:
                raise SeedNotFound(movie_id) from exc
            if exc.fatal:
                raise
            logger.warning(f"could not fetch seed movie {movie_id}, using popular movies: {exc!r}")
            return None

    def _result(
        self,
        movie_id: int,
        seed: Optional[MovieDetails],
        recommendation_type: RecommendationType,
        page: MoviePage,
        movies: list[MovieSummary],
    ) -> Recommendations:
        return Recommendations(
            page=page.page,
            total_pages=page.total_pages,
            total_results=page.total_results,
            movies=movies,
            based_on=BasedOn(
                movie_id=movie_id,
                movie_title=seed.title if seed is not None else None,
                recommendation_type=recommendation_type,
                genres=seed.genres if seed is not None else (),
            ),
        )

    def _similar(self, seed: MovieDetails) -> Recommendations:
        movies = list(seed.similar[:MAX_SIMILAR])
        page = MoviePage(page=1, total_pages=1, total_results=len(movies), movies=movies)
        return self._result(seed.id, seed, RecommendationType.SIMILAR, page, movies)

    async def _profile_genres(self, profile: UserPreferenceProfile) -> tuple[Genre, ...]:
        catalog = await fetch_genre_catalog(self.client)
        genres = []
        for genre_count in profile.top_genres:
            genre = catalog.get(genre_count.name.lower())
            if genre is None:
                logger.debug(f"unknown genre '{genre_count.name}' in preference profile")
                continue
            genres.append(genre)
        return tuple(genres)

    async def _personalized(
        self, seed: MovieDetails, page: int, session_id: Optional[str]
    ) -> Optional[Recommendations]:
        if not session_id or self.store is None:
            return None
        profile = await self.store.preference_profile(session_id)
        if profile is None or profile.total_searches < MIN_SEARCHES:
            return None

        profile_genres = await self._profile_genres(profile)
        if not profile_genres:
            return None
        genres = _merge_genres(seed.genres[:SEED_GENRES], profile_genres)
        filters = Filters(
            genres=genres, match_any_genre=True, min_rating=MIN_RATING, min_votes=MIN_VOTES
        )
        results = await self.client.discover_movies(filters, page)
        excluded = {seed.id} | await self.store.interacted_movies(session_id)
        movies = _exclude(results.movies, excluded)
        if not movies:
            return None
        logger.info(
            f"personalized {len(movies)} recommendations for session {session_id} "
            f"from {profile.total_searches} searches"
        )
        return self._result(seed.id, seed, RecommendationType.USER_PREFERENCE, results, movies)

    async def _genre_based(self, seed: MovieDetails, page: int) -> Optional[Recommendations]:
        filters = Filters(
            genres=seed.genres[:SEED_GENRES], min_rating=MIN_RATING, min_votes=MIN_VOTES
        )
        results = await self.client.discover_movies(filters, page)
        movies = _exclude(results.movies, {seed.id})
        if not movies:
            return None
        return self._result(seed.id, seed, RecommendationType.GENRE_BASED, results, movies)

    async def _popular(
        self, movie_id: int, seed: Optional[MovieDetails], page: int
    ) -> Recommendations:
        try:
            results = await self.client.get_popular_movies(page)
        except UpstreamError as exc:
            if exc.fatal:
                raise
            logger.error(f"popular fallback failed, returning no recommendations: {exc!r}")
            results = MoviePage(page=page, total_pages=0, total_results=0, movies=[])
        movies = _exclude(results.movies, {movie_id})
        return self._result(movie_id, seed, RecommendationType.POPULAR_FALLBACK, results, movies)

    async def _record(
        self, session_id: Optional[str], seed: Optional[MovieDetails], result: Recommendations
    ) -> None:
        if not session_id or self.store is None:
            return
        await self.store.save_recommendation(
            session_id,
            result.based_on.movie_id,
            result.based_on.movie_title,
            result.based_on.recommendation_type,
            result.movies,
            Filters(genres=seed.genres if seed is not None else ()),
        )

    @timed
    async def recommend(
        self, movie_id: int, page: int = 1, session_id: Optional[str] = None
    ) -> Recommendations:
        seed = await self._fetch_seed(movie_id)
        result = None
        if seed is not None and seed.similar:
            result = self._similar(seed)
        elif seed is not None and seed.genres:
            result = await self._tier("personalized", self._personalized(seed, page, session_id))
            if result is None:
                result = await self._tier("genre-based", self._genre_based(seed, page))
        if result is None:
            result = await self._popular(movie_id, seed, page)

        logger.info(
            f"{len(result.movies)} {result.based_on.recommendation_type.value} "
            f"recommendations for movie {movie_id}"
        )
        await self._record(session_id, seed, result)
        return result
