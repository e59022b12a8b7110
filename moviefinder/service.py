"""
Core operations consumed by the HTTP layer.

`MovieService` is built once at startup from its collaborators and handed to
the request handlers, so tests can swap in fakes for the client and the store.
"""

from dataclasses import replace
from typing import Optional, Union

from moviefinder.errors import ErrorKind, SeedNotFound, UpstreamError
from moviefinder.interactions import InteractionStore
from moviefinder.logger import logger
from moviefinder.models import (FeedbackType, Filters, Genre, MovieDetails,
                                MoviePage, PersonDetails, PersonPage,
                                RecommendationRecord, Recommendations,
                                SearchHistoryRecord, SearchInteraction,
                                UserPreferenceProfile)
from moviefinder.recommend import RecommendationEngine, fetch_genre_catalog

SEARCH_INTERACTIONS = {kind.value: kind for kind in SearchInteraction}
FEEDBACK_TYPES = {kind.value: kind for kind in FeedbackType}
INTERACTION_TYPES = sorted([*SEARCH_INTERACTIONS, *FEEDBACK_TYPES])


def filter_page(page: MoviePage, filters: Filters) -> MoviePage:
    """Keep the movies of a search page matching the genre and rating filters."""
    genre_ids = set(filters.genre_ids)
    movies = [
        movie for movie in page.movies
        if (not genre_ids or genre_ids & set(movie.genre_ids))
        and (filters.min_rating is None or movie.rating >= filters.min_rating)
        and (filters.max_rating is None or movie.rating <= filters.max_rating)
    ]
    return replace(page, movies=movies)


class MovieService:
    def __init__(
        self,
        client,
        store: InteractionStore,
        engine: Optional[RecommendationEngine] = None,
    ):
        self.client = client
        self.store = store
        self.engine = engine or RecommendationEngine(client, store)

    async def _with_genre_names(self, filters: Filters) -> Filters:
        if not filters.genres or all(genre.name for genre in filters.genres):
            return filters
        try:
            catalog = await fetch_genre_catalog(self.client)
        except UpstreamError as exc:
            if exc.fatal:
                raise
            logger.warning(f"genre names unavailable, keeping ids only: {exc!r}")
            return filters
        by_id = {genre.id: genre for genre in catalog.values()}
        genres = tuple(by_id.get(genre.id, genre) for genre in filters.genres)
        return replace(filters, genres=genres)

    async def get_movie_details(self, movie_id: int) -> MovieDetails:
        try:
            return await self.client.get_movie_details(movie_id)
        except UpstreamError as exc:
            if exc.kind is ErrorKind.NOT_FOUND:
                raise SeedNotFound(movie_id) from exc
            raise

    async def get_recommendations(
        self, movie_id: int, page: int = 1, session_id: Optional[str] = None
    ) -> Recommendations:
        return await self.engine.recommend(movie_id, page=page, session_id=session_id)

    async def search_movies(
        self,
        query: str,
        page: int = 1,
        filters: Optional[Filters] = None,
        session_id: Optional[str] = None,
    ) -> MoviePage:
        filters = await self._with_genre_names(filters or Filters())
        results = filter_page(await self.client.search_movies(query.strip(), page, filters), filters)
        if session_id:
            await self.store.save_search(session_id, query, filters, results)
        return results

    async def discover_movies(self, filters: Filters, page: int = 1) -> MoviePage:
        return await self.client.discover_movies(filters, page)

    async def get_popular_movies(self, page: int = 1) -> MoviePage:
        return await self.client.get_popular_movies(page)

    async def get_genres(self) -> list[Genre]:
        return await self.client.list_genres()

    async def get_movies_by_genre(self, genre_id: int, page: int = 1) -> MoviePage:
        return await self.client.get_movies_by_genre(genre_id, page)

    async def search_people(self, query: str, page: int = 1) -> PersonPage:
        return await self.client.search_people(query.strip(), page)

    async def get_person_details(self, person_id: int) -> PersonDetails:
        return await self.client.get_person_details(person_id)

    async def record_interaction(
        self,
        session_id: str,
        target: Union[str, int, None],
        interaction_type: str,
        movie_id: int,
    ) -> bool:
        """
        Log an interaction against the session's history.

        Search interactions (`clickedMovies`, `viewedDetails`,
        `requestedRecommendations`) target a search query, recommendation
        feedback (`liked`, `disliked`, `clicked`) targets the seed movie id.
        Returns False when no matching record exists or the store is down.
        """
        if interaction_type in SEARCH_INTERACTIONS:
            if not isinstance(target, str) or not target.strip():
                raise ValueError("search interactions need search_query")
            return await self.store.record_search_interaction(
                session_id, target, SEARCH_INTERACTIONS[interaction_type], movie_id
            )
        if interaction_type in FEEDBACK_TYPES:
            if not isinstance(target, int) or isinstance(target, bool):
                raise ValueError("feedback interactions need seed_movie_id")
            return await self.store.record_feedback(
                session_id, target, FEEDBACK_TYPES[interaction_type], movie_id
            )
        logger.warning(f"unknown interaction type '{interaction_type}' from session {session_id}")
        raise ValueError(f"interaction type must be one of {INTERACTION_TYPES}")

    async def get_search_history(self, session_id: str, limit: int = 10) -> list[SearchHistoryRecord]:
        return await self.store.search_history(session_id, limit)

    async def get_recommendation_history(
        self, session_id: str, limit: int = 10
    ) -> list[RecommendationRecord]:
        return await self.store.recommendation_history(session_id, limit)

    async def get_preferences(self, session_id: str) -> Optional[UserPreferenceProfile]:
        return await self.store.preference_profile(session_id)
