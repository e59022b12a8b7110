"""
In-process storage backend. Used when no database is configured and in tests.
"""

import copy
import itertools
from datetime import datetime
from typing import Optional

from moviefinder.models import (FeedbackType, RecommendationRecord,
                                SearchHistoryRecord, SearchInteraction,
                                add_unique)


class MemoryBackend:
    def __init__(self):
        self.search_history: list[SearchHistoryRecord] = []
        self.recommendations: list[RecommendationRecord] = []
        self._ids = itertools.count(1)

    @staticmethod
    def _newest_first(records: list, since: datetime) -> list:
        visible = [record for record in records if record.created_at >= since]
        # stable sort keeps insertion order for equal timestamps, reversed for recency
        return sorted(reversed(visible), key=lambda record: record.created_at, reverse=True)

    async def insert_search_history(self, record: SearchHistoryRecord) -> SearchHistoryRecord:
        stored = copy.deepcopy(record)
        stored.record_id = next(self._ids)
        self.search_history.append(stored)
        return copy.deepcopy(stored)

    async def latest_search(
        self, session_id: str, search_query: str, since: datetime
    ) -> Optional[SearchHistoryRecord]:
        matches = [
            record for record in self._newest_first(self.search_history, since)
            if record.session_id == session_id and record.search_query == search_query
        ]
        return copy.deepcopy(matches[0]) if matches else None

    async def add_search_interaction(
        self, record_id: int, interaction: SearchInteraction, movie_id: int
    ) -> bool:
        for record in self.search_history:
            if record.record_id == record_id:
                return add_unique(record.interaction.setdefault(interaction, []), movie_id)
        return False

    async def recent_searches(
        self, session_id: str, since: datetime, limit: int
    ) -> list[SearchHistoryRecord]:
        records = [
            record for record in self._newest_first(self.search_history, since)
            if record.session_id == session_id
        ]
        return copy.deepcopy(records[:limit])

    async def searches_with_result(
        self, movie_id: int, since: datetime, limit: int
    ) -> list[SearchHistoryRecord]:
        records = [
            record for record in self._newest_first(self.search_history, since)
            if movie_id in record.result_movie_ids
        ]
        return copy.deepcopy(records[:limit])

    async def delete_searches_before(self, cutoff: datetime) -> int:
        kept = [record for record in self.search_history if record.created_at >= cutoff]
        deleted = len(self.search_history) - len(kept)
        self.search_history = kept
        return deleted

    async def insert_recommendation(self, record: RecommendationRecord) -> RecommendationRecord:
        stored = copy.deepcopy(record)
        stored.record_id = next(self._ids)
        self.recommendations.append(stored)
        return copy.deepcopy(stored)

    async def latest_recommendation(
        self, session_id: str, movie_id: int, since: datetime
    ) -> Optional[RecommendationRecord]:
        matches = [
            record for record in self._newest_first(self.recommendations, since)
            if record.session_id == session_id and record.based_on_movie_id == movie_id
        ]
        return copy.deepcopy(matches[0]) if matches else None

    async def add_feedback(self, record_id: int, feedback: FeedbackType, movie_id: int) -> bool:
        for record in self.recommendations:
            if record.record_id == record_id:
                return add_unique(record.user_feedback.setdefault(feedback, []), movie_id)
        return False

    async def recent_recommendations(
        self, session_id: str, since: datetime, limit: int
    ) -> list[RecommendationRecord]:
        records = [
            record for record in self._newest_first(self.recommendations, since)
            if record.session_id == session_id
        ]
        return copy.deepcopy(records[:limit])

    async def recommendations_based_on(
        self, movie_id: int, since: datetime, limit: int
    ) -> list[RecommendationRecord]:
        records = [
            record for record in self._newest_first(self.recommendations, since)
            if record.based_on_movie_id == movie_id
        ]
        return copy.deepcopy(records[:limit])

    async def delete_recommendations_before(self, cutoff: datetime) -> int:
        kept = [record for record in self.recommendations if record.created_at >= cutoff]
        deleted = len(self.recommendations) - len(kept)
        self.recommendations = kept
        return deleted
