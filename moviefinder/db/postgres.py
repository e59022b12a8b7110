"""
Functions to interact with PostgreSQL database.
"""

import json
from datetime import date
from pathlib import Path
from typing import Any, Optional

import asyncpg

from moviefinder.models import (FeedbackType, Filters, Genre, MovieSummary,
                                RecommendationRecord, RecommendationType,
                                ScoredMovie, SearchHistoryRecord,
                                SearchInteraction)

SQL_DIR = Path(__file__).resolve().parents[2] / "sql"

SEARCH_INTERACTION_COLUMNS = {
    SearchInteraction.CLICKED_MOVIES: "clicked_movies",
    SearchInteraction.VIEWED_DETAILS: "viewed_details",
    SearchInteraction.REQUESTED_RECOMMENDATIONS: "requested_recommendations",
}

FEEDBACK_COLUMNS = {
    FeedbackType.LIKED: "liked",
    FeedbackType.DISLIKED: "disliked",
    FeedbackType.CLICKED: "clicked",
}


async def create_search_history_table(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as connection:
        await connection.execute((SQL_DIR / "create_search_history.sql").read_text())


async def create_recommendations_table(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as connection:
        await connection.execute((SQL_DIR / "create_recommendations.sql").read_text())


def _optional_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def movie_to_json(movie: MovieSummary) -> dict[str, Any]:
    return {
        "id": movie.id,
        "title": movie.title,
        "poster_path": movie.poster_path,
        "rating": movie.rating,
        "popularity": movie.popularity,
        "genre_ids": list(movie.genre_ids),
        "release_date": movie.release_date.isoformat() if movie.release_date else None,
    }


def movie_from_json(data: dict[str, Any]) -> MovieSummary:
    return MovieSummary(
        id=data["id"],
        title=data.get("title") or "",
        poster_path=data.get("poster_path"),
        rating=data.get("rating") or 0.0,
        popularity=data.get("popularity") or 0.0,
        genre_ids=tuple(data.get("genre_ids") or ()),
        release_date=_optional_date(data.get("release_date")),
    )


def filters_to_json(filters: Filters) -> dict[str, Any]:
    """Snapshot of the filters worth keeping, unset values are dropped."""
    snapshot: dict[str, Any] = {}
    if filters.genres:
        snapshot["genres"] = [{"id": genre.id, "name": genre.name} for genre in filters.genres]
    if filters.year:
        snapshot["year"] = filters.year
    if filters.min_rating is not None:
        snapshot["min_rating"] = filters.min_rating
    if filters.max_rating is not None:
        snapshot["max_rating"] = filters.max_rating
    if filters.cast:
        snapshot["cast"] = list(filters.cast)
    if filters.sort_by:
        snapshot["sort_by"] = filters.sort_by
    return snapshot


def filters_from_json(data: dict[str, Any]) -> Filters:
    return Filters(
        genres=tuple(Genre(genre["id"], genre.get("name") or "") for genre in data.get("genres", [])),
        year=data.get("year"),
        min_rating=data.get("min_rating"),
        max_rating=data.get("max_rating"),
        cast=tuple(data.get("cast", [])),
        sort_by=data.get("sort_by") or "popularity.desc",
    )


def _search_from_row(row: asyncpg.Record) -> SearchHistoryRecord:
    return SearchHistoryRecord(
        session_id=row["session_id"],
        search_query=row["search_query"],
        filters=filters_from_json(json.loads(row["filters"])),
        total_results=row["total_results"],
        results=[movie_from_json(movie) for movie in json.loads(row["results"])],
        created_at=row["created_at"],
        interaction={
            kind: list(row[column]) for kind, column in SEARCH_INTERACTION_COLUMNS.items()
        },
        record_id=row["id"],
    )


def _recommendation_from_row(row: asyncpg.Record) -> RecommendationRecord:
    return RecommendationRecord(
        session_id=row["session_id"],
        based_on_movie_id=row["based_on_movie_id"],
        based_on_movie_title=row["based_on_movie_title"],
        recommendation_type=RecommendationType(row["recommendation_type"]),
        recommendations=[
            ScoredMovie(movie_from_json(item), item.get("similarity", 0.0))
            for item in json.loads(row["recommendations"])
        ],
        filters=filters_from_json(json.loads(row["filters"])),
        created_at=row["created_at"],
        user_feedback={kind: list(row[column]) for kind, column in FEEDBACK_COLUMNS.items()},
        record_id=row["id"],
    )


def _updated(status: str) -> bool:
    # asyncpg returns the command tag, e.g. "UPDATE 1"
    return status.split()[-1] != "0"


def _deleted(status: str) -> int:
    return int(status.split()[-1])


class PostgresBackend:
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def insert_search_history(self, record: SearchHistoryRecord) -> SearchHistoryRecord:
        async with self.pool.acquire() as connection:
            record_id = await connection.fetchval(
                """
                INSERT INTO search_history (
                    session_id, search_query, filters, total_results,
                    results, result_movie_ids, clicked_movies,
                    viewed_details, requested_recommendations, created_at)
                VALUES ($1, $2, $3::jsonb, $4, $5::jsonb, $6, $7, $8, $9, $10)
                RETURNING id
            """,
                record.session_id,
                record.search_query,
                json.dumps(filters_to_json(record.filters)),
                record.total_results,
                json.dumps([movie_to_json(movie) for movie in record.results]),
                record.result_movie_ids,
                record.interaction.get(SearchInteraction.CLICKED_MOVIES, []),
                record.interaction.get(SearchInteraction.VIEWED_DETAILS, []),
                record.interaction.get(SearchInteraction.REQUESTED_RECOMMENDATIONS, []),
                record.created_at,
            )
        record.record_id = record_id
        return record

    async def latest_search(
        self, session_id: str, search_query: str, since
    ) -> Optional[SearchHistoryRecord]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                """
                SELECT * FROM search_history
                WHERE session_id = $1 AND search_query = $2 AND created_at >= $3
                ORDER BY created_at DESC, id DESC LIMIT 1
            """,
                session_id,
                search_query,
                since,
            )
        return _search_from_row(row) if row is not None else None

    async def add_search_interaction(
        self, record_id: int, interaction: SearchInteraction, movie_id: int
    ) -> bool:
        column = SEARCH_INTERACTION_COLUMNS[interaction]
        async with self.pool.acquire() as connection:
            status = await connection.execute(
                f"""
                UPDATE search_history SET {column} = array_append({column}, $2)
                WHERE id = $1 AND NOT ($2 = ANY({column}))
            """,
                record_id,
                movie_id,
            )
        return _updated(status)

    async def recent_searches(self, session_id: str, since, limit: int) -> list[SearchHistoryRecord]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                """
                SELECT * FROM search_history
                WHERE session_id = $1 AND created_at >= $2
                ORDER BY created_at DESC, id DESC LIMIT $3
            """,
                session_id,
                since,
                limit,
            )
        return [_search_from_row(row) for row in rows]

    async def searches_with_result(self, movie_id: int, since, limit: int) -> list[SearchHistoryRecord]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                """
                SELECT * FROM search_history
                WHERE $1 = ANY(result_movie_ids) AND created_at >= $2
                ORDER BY created_at DESC, id DESC LIMIT $3
            """,
                movie_id,
                since,
                limit,
            )
        return [_search_from_row(row) for row in rows]

    async def delete_searches_before(self, cutoff) -> int:
        async with self.pool.acquire() as connection:
            status = await connection.execute(
                "DELETE FROM search_history WHERE created_at < $1", cutoff
            )
        return _deleted(status)

    async def insert_recommendation(self, record: RecommendationRecord) -> RecommendationRecord:
        recommendations = [
            {**movie_to_json(item.movie), "similarity": item.similarity}
            for item in record.recommendations
        ]
        async with self.pool.acquire() as connection:
            record_id = await connection.fetchval(
                """
                INSERT INTO recommendations (
                    session_id, based_on_movie_id, based_on_movie_title,
                    recommendation_type, recommendations, filters,
                    liked, disliked, clicked, created_at)
                VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7, $8, $9, $10)
                RETURNING id
            """,
                record.session_id,
                record.based_on_movie_id,
                record.based_on_movie_title,
                record.recommendation_type.value,
                json.dumps(recommendations),
                json.dumps(filters_to_json(record.filters)),
                record.user_feedback.get(FeedbackType.LIKED, []),
                record.user_feedback.get(FeedbackType.DISLIKED, []),
                record.user_feedback.get(FeedbackType.CLICKED, []),
                record.created_at,
            )
        record.record_id = record_id
        return record

    async def latest_recommendation(
        self, session_id: str, movie_id: int, since
    ) -> Optional[RecommendationRecord]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                """
                SELECT * FROM recommendations
                WHERE session_id = $1 AND based_on_movie_id = $2 AND created_at >= $3
                ORDER BY created_at DESC, id DESC LIMIT 1
            """,
                session_id,
                movie_id,
                since,
            )
        return _recommendation_from_row(row) if row is not None else None

    async def add_feedback(self, record_id: int, feedback: FeedbackType, movie_id: int) -> bool:
        column = FEEDBACK_COLUMNS[feedback]
        async with self.pool.acquire() as connection:
            status = await connection.execute(
                f"""
                UPDATE recommendations SET {column} = array_append({column}, $2)
                WHERE id = $1 AND NOT ($2 = ANY({column}))
            """,
                record_id,
                movie_id,
            )
        return _updated(status)

    async def recent_recommendations(
        self, session_id: str, since, limit: int
    ) -> list[RecommendationRecord]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                """
                SELECT * FROM recommendations
                WHERE session_id = $1 AND created_at >= $2
                ORDER BY created_at DESC, id DESC LIMIT $3
            """,
                session_id,
                since,
                limit,
            )
        return [_recommendation_from_row(row) for row in rows]

    async def recommendations_based_on(
        self, movie_id: int, since, limit: int
    ) -> list[RecommendationRecord]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                """
                SELECT * FROM recommendations
                WHERE based_on_movie_id = $1 AND created_at >= $2
                ORDER BY created_at DESC, id DESC LIMIT $3
            """,
                movie_id,
                since,
                limit,
            )
        return [_recommendation_from_row(row) for row in rows]

    async def delete_recommendations_before(self, cutoff) -> int:
        async with self.pool.acquire() as connection:
            status = await connection.execute(
                "DELETE FROM recommendations WHERE created_at < $1", cutoff
            )
        return _deleted(status)
