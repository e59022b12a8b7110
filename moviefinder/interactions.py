"""
Search and recommendation history with retention rules.

Interaction logging is best-effort: storage failures are logged and turned
into `None`, `False` or empty results, never raised to the caller.
"""

from datetime import datetime, timedelta
from typing import Any, Awaitable, Optional

import asyncpg

from moviefinder.errors import PersistenceError
from moviefinder.logger import logger
from moviefinder.models import (MAX_QUERY_LENGTH, MAX_STORED_RESULTS,
                                FeedbackType, Filters, MoviePage,
                                MovieSummary, RecommendationRecord,
                                RecommendationType, ScoredMovie,
                                SearchHistoryRecord, SearchInteraction,
                                UserPreferenceProfile)
from moviefinder.preferences import HISTORY_WINDOW, aggregate_preferences
from moviefinder.scoring import score
from moviefinder.utils import Clock, truncate, utcnow

SEARCH_HISTORY_TTL = timedelta(days=30)
RECOMMENDATION_TTL = timedelta(days=7)
SEARCH_INTERACTION_WINDOW = timedelta(hours=1)
FEEDBACK_WINDOW = timedelta(hours=24)
INTERACTED_WINDOW = 5

# smallest datetime step, turns "created_at >= x" into "created_at > cutoff"
RESOLUTION = timedelta(microseconds=1)

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, PersistenceError)


class InteractionStore:
    def __init__(self, backend, clock: Clock = utcnow, sweep_on_read: bool = False):
        self.backend = backend
        self.clock = clock
        self.sweep_on_read = sweep_on_read

    async def _best_effort(self, action: str, operation: Awaitable, default: Any) -> Any:
        try:
            return await operation
        except STORE_ERRORS as exc:
            logger.error(f"{action} failed: {exc!r}")
            return default

    def _visible_since(self, now: datetime, ttl: timedelta) -> datetime:
        """Oldest creation instant that has not expired yet."""
        return now - ttl + RESOLUTION

    async def save_search(
        self,
        session_id: str,
        search_query: str,
        filters: Filters,
        page: MoviePage,
    ) -> Optional[SearchHistoryRecord]:
        record = SearchHistoryRecord(
            session_id=session_id,
            search_query=truncate(search_query, MAX_QUERY_LENGTH),
            filters=filters,
            total_results=page.total_results,
            results=list(page.movies[:MAX_STORED_RESULTS]),
            created_at=self.clock(),
        )
        return await self._best_effort(
            "saving search history", self.backend.insert_search_history(record), None
        )

    async def search_history(self, session_id: str, limit: int = 10) -> list[SearchHistoryRecord]:
        since = self._visible_since(self.clock(), SEARCH_HISTORY_TTL)
        return await self._best_effort(
            "reading search history", self.backend.recent_searches(session_id, since, limit), []
        )

    async def searches_returning(self, movie_id: int, limit: int = 10) -> list[SearchHistoryRecord]:
        since = self._visible_since(self.clock(), SEARCH_HISTORY_TTL)
        return await self._best_effort(
            "reading searches by movie", self.backend.searches_with_result(movie_id, since, limit), []
        )

    async def _record_search_interaction(
        self, session_id: str, search_query: str, interaction: SearchInteraction, movie_id: int
    ) -> bool:
        since = self.clock() - SEARCH_INTERACTION_WINDOW
        record = await self.backend.latest_search(
            session_id, truncate(search_query, MAX_QUERY_LENGTH), since
        )
        if record is None:
            logger.debug(f"no search '{search_query}' within the last hour for session {session_id}")
            return False
        added = await self.backend.add_search_interaction(record.record_id, interaction, movie_id)
        logger.debug(f"{interaction.value} {movie_id} on search {record.record_id}: added={added}")
        return True

    async def record_search_interaction(
        self, session_id: str, search_query: str, interaction: SearchInteraction, movie_id: int
    ) -> bool:
        return await self._best_effort(
            "updating search interaction",
            self._record_search_interaction(session_id, search_query, interaction, movie_id),
            False,
        )

    async def save_recommendation(
        self,
        session_id: str,
        based_on_movie_id: int,
        based_on_movie_title: Optional[str],
        recommendation_type: RecommendationType,
        movies: list[MovieSummary],
        filters: Optional[Filters] = None,
    ) -> Optional[RecommendationRecord]:
        filters = filters or Filters()
        record = RecommendationRecord(
            session_id=session_id,
            based_on_movie_id=based_on_movie_id,
            based_on_movie_title=based_on_movie_title,
            recommendation_type=recommendation_type,
            recommendations=[
                ScoredMovie(movie, score(movie, filters)) for movie in movies[:MAX_STORED_RESULTS]
            ],
            filters=filters,
            created_at=self.clock(),
        )
        return await self._best_effort(
            "saving recommendation", self.backend.insert_recommendation(record), None
        )

    async def recommendation_history(
        self, session_id: str, limit: int = 10
    ) -> list[RecommendationRecord]:
        since = self._visible_since(self.clock(), RECOMMENDATION_TTL)
        return await self._best_effort(
            "reading recommendation history",
            self.backend.recent_recommendations(session_id, since, limit),
            [],
        )

    async def recommendations_based_on(
        self, movie_id: int, limit: int = 10
    ) -> list[RecommendationRecord]:
        since = self._visible_since(self.clock(), RECOMMENDATION_TTL)
        return await self._best_effort(
            "reading recommendations by movie",
            self.backend.recommendations_based_on(movie_id, since, limit),
            [],
        )

    async def _record_feedback(
        self, session_id: str, based_on_movie_id: int, feedback: FeedbackType, movie_id: int
    ) -> bool:
        since = self.clock() - FEEDBACK_WINDOW
        record = await self.backend.latest_recommendation(session_id, based_on_movie_id, since)
        if record is None:
            logger.debug(
                f"no recommendation for movie {based_on_movie_id} within the last day "
                f"for session {session_id}"
            )
            return False
        await self.backend.add_feedback(record.record_id, feedback, movie_id)
        return True

    async def record_feedback(
        self, session_id: str, based_on_movie_id: int, feedback: FeedbackType, movie_id: int
    ) -> bool:
        return await self._best_effort(
            "updating recommendation feedback",
            self._record_feedback(session_id, based_on_movie_id, feedback, movie_id),
            False,
        )

    async def preference_profile(self, session_id: str) -> Optional[UserPreferenceProfile]:
        if self.sweep_on_read:
            await self.purge_expired()
        now = self.clock()
        records = await self._best_effort(
            "reading search history for preferences",
            self.backend.recent_searches(
                session_id, self._visible_since(now, SEARCH_HISTORY_TTL), HISTORY_WINDOW
            ),
            [],
        )
        return aggregate_preferences(records, now)

    async def interacted_movies(self, session_id: str, limit: int = INTERACTED_WINDOW) -> set[int]:
        """Movies clicked or viewed in the session's latest searches."""
        records = await self.search_history(session_id, limit=limit)
        interacted = set()
        for record in records:
            interacted.update(record.interaction.get(SearchInteraction.CLICKED_MOVIES, []))
            interacted.update(record.interaction.get(SearchInteraction.VIEWED_DETAILS, []))
        return interacted

    async def purge_expired(self) -> tuple[int, int]:
        """Delete records strictly older than their TTL. Returns (searches, recommendations) deleted."""
        now = self.clock()
        searches = await self._best_effort(
            "purging search history",
            self.backend.delete_searches_before(now - SEARCH_HISTORY_TTL),
            0,
        )
        recommendations = await self._best_effort(
            "purging recommendations",
            self.backend.delete_recommendations_before(now - RECOMMENDATION_TTL),
            0,
        )
        if searches or recommendations:
            logger.info(
                f"retention sweep removed {searches} searches and {recommendations} recommendations"
            )
        return searches, recommendations
