import asyncio
import contextlib
from datetime import date
from typing import Any, Optional

import asyncpg
from fastapi import FastAPI, Header, Path, Query, Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from starlette import status
from starlette.responses import JSONResponse

from moviefinder.background import periodic_retention_sweep
from moviefinder.config import load_settings
from moviefinder.db.memory import MemoryBackend
from moviefinder.db.postgres import PostgresBackend
from moviefinder.errors import ErrorKind, MovieFinderError, SeedNotFound
from moviefinder.interactions import InteractionStore
from moviefinder.logger import logger
from moviefinder.models import Filters, Genre
from moviefinder.service import FEEDBACK_TYPES, MovieService
from moviefinder.upstream.client import UpstreamClient
from moviefinder.utils import timed

MAX_YEAR = date.today().year + 5

ERROR_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

app = FastAPI(title="Movie Finder API", version="1.0.0")


class InteractionBody(BaseModel):
    interaction_type: str
    movie_id: int = Field(ge=1)
    search_query: Optional[str] = Field(default=None, min_length=1, max_length=100)
    seed_movie_id: Optional[int] = Field(default=None, ge=1)


@app.on_event("startup")
@timed
async def startup_event():
    settings = load_settings()
    client = UpstreamClient.from_settings(settings)
    if settings.postgres_uri:
        app.state.pool = await asyncpg.create_pool(settings.postgres_uri)
        backend = PostgresBackend(app.state.pool)
    else:
        logger.warning("POSTGRES_URI not set, keeping search history in memory")
        app.state.pool = None
        backend = MemoryBackend()
    store = InteractionStore(backend)
    app.state.client = client
    app.state.service = MovieService(client, store)
    app.state.sweeper = asyncio.create_task(
        periodic_retention_sweep(store, settings.retention_sweep_seconds)
    )


@app.on_event("shutdown")
async def shutdown_event():
    app.state.sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await app.state.sweeper
    await app.state.client.aclose()
    if app.state.pool is not None:
        await app.state.pool.close()


@app.exception_handler(MovieFinderError)
async def movie_finder_error_handler(request: Request, exc: MovieFinderError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.kind, status.HTTP_502_BAD_GATEWAY)
    message = "Movie not found" if isinstance(exc, SeedNotFound) else str(exc)
    logger.error(f"{request.url.path} failed with {exc.kind.value}: {exc!r}")
    return JSONResponse(
        {"status": "error", "kind": exc.kind.value, "message": message}, status_code=status_code
    )


def _success(data: Any, **extra) -> JSONResponse:
    return JSONResponse({"status": "success", "data": jsonable_encoder(data), **jsonable_encoder(extra)})


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message}, status_code=400)


def _int_list(value: Optional[str]) -> tuple[int, ...]:
    if not value:
        return ()
    return tuple(int(item) for item in value.split(",") if item.strip())


def _service(request: Request) -> MovieService:
    return request.app.state.service


@app.get("/api/health")
async def health(request: Request):
    return JSONResponse({
        "status": "success",
        "message": "Movie Finder API is running",
        "version": app.version,
        "database": "postgres" if getattr(request.app.state, "pool", None) else "memory",
    })


@app.get("/api/movies/popular")
@timed
async def popular_movies(request: Request, page: int = Query(default=1, ge=1, le=1000)):
    return _success(await _service(request).get_popular_movies(page))


@app.get("/api/movies/genres")
@timed
async def genres(request: Request):
    return _success(await _service(request).get_genres())


@app.get("/api/movies/search")
@timed
async def search_movies(
    request: Request,
    q: str = Query(min_length=1, max_length=100),
    page: int = Query(default=1, ge=1, le=1000),
    year: Optional[int] = Query(default=None, ge=1900, le=MAX_YEAR),
    include_adult: bool = False,
    region: Optional[str] = None,
    genres: Optional[str] = None,
    min_rating: Optional[float] = Query(default=None, ge=0.0, le=10.0),
    session_id: Optional[str] = Header(default=None, alias="X-Session-ID"),
):
    if not q.strip():
        return _bad_request("Search query is required")
    try:
        genre_ids = _int_list(genres)
    except ValueError:
        return _bad_request("genres must be a comma separated list of ids")
    filters = Filters(
        genres=tuple(Genre(genre_id) for genre_id in genre_ids),
        year=year,
        include_adult=include_adult,
        region=region,
        min_rating=min_rating,
    )
    results = await _service(request).search_movies(q, page, filters, session_id=session_id)
    return _success(results, query=q.strip(), filters=filters)


@app.get("/api/movies/discover")
@timed
async def discover_movies(
    request: Request,
    page: int = Query(default=1, ge=1, le=1000),
    sort_by: str = "popularity.desc",
    genres: Optional[str] = None,
    year: Optional[int] = Query(default=None, ge=1900, le=MAX_YEAR),
    min_rating: Optional[float] = Query(default=None, ge=0.0, le=10.0),
    max_rating: Optional[float] = Query(default=None, ge=0.0, le=10.0),
    min_votes: int = Query(default=100, ge=0),
    cast: Optional[str] = None,
    keywords: Optional[str] = None,
    language: Optional[str] = None,
    release_date_from: Optional[date] = None,
    release_date_to: Optional[date] = None,
):
    try:
        filters = Filters(
            genres=tuple(Genre(genre_id) for genre_id in _int_list(genres)),
            sort_by=sort_by,
            year=year,
            min_rating=min_rating,
            max_rating=max_rating,
            min_votes=min_votes,
            cast=_int_list(cast),
            keywords=_int_list(keywords),
            language=language,
            release_date_from=release_date_from,
            release_date_to=release_date_to,
        )
    except ValueError:
        return _bad_request("genres, cast and keywords must be comma separated lists of ids")
    return _success(await _service(request).discover_movies(filters, page), filters=filters)


@app.get("/api/movies/genre/{genre_id}")
@timed
async def movies_by_genre(
    request: Request,
    genre_id: int = Path(ge=1),
    page: int = Query(default=1, ge=1, le=1000),
):
    return _success(await _service(request).get_movies_by_genre(genre_id, page), genre_id=genre_id)


@app.get("/api/movies/{movie_id}")
@timed
async def movie_details(request: Request, movie_id: int = Path(ge=1)):
    return _success(await _service(request).get_movie_details(movie_id))


@app.get("/api/movies/{movie_id}/recommendations")
@timed
async def recommendations(
    request: Request,
    movie_id: int = Path(ge=1),
    page: int = Query(default=1, ge=1, le=1000),
    session_id: Optional[str] = Header(default=None, alias="X-Session-ID"),
):
    result = await _service(request).get_recommendations(movie_id, page, session_id=session_id)
    return _success(result)


@app.get("/api/people/search")
@timed
async def search_people(
    request: Request,
    q: str = Query(min_length=1, max_length=100),
    page: int = Query(default=1, ge=1, le=1000),
):
    if not q.strip():
        return _bad_request("Search query is required")
    return _success(await _service(request).search_people(q, page), query=q.strip())


@app.get("/api/people/{person_id}")
@timed
async def person_details(request: Request, person_id: int = Path(ge=1)):
    return _success(await _service(request).get_person_details(person_id))


@app.post("/api/interactions")
@timed
async def record_interaction(
    request: Request,
    body: InteractionBody,
    session_id: Optional[str] = Header(default=None, alias="X-Session-ID"),
):
    if not session_id:
        return _bad_request("X-Session-ID header is required")
    if body.interaction_type in FEEDBACK_TYPES:
        target = body.seed_movie_id
    else:
        target = body.search_query
    try:
        recorded = await _service(request).record_interaction(
            session_id, target, body.interaction_type, body.movie_id
        )
    except ValueError as exc:
        return _bad_request(str(exc))
    return _success({"recorded": recorded})


@app.get("/api/history/searches")
@timed
async def search_history(
    request: Request,
    limit: int = Query(default=10, ge=1, le=50),
    session_id: Optional[str] = Header(default=None, alias="X-Session-ID"),
):
    if not session_id:
        return _bad_request("X-Session-ID header is required")
    return _success(await _service(request).get_search_history(session_id, limit))


@app.get("/api/history/recommendations")
@timed
async def recommendation_history(
    request: Request,
    limit: int = Query(default=10, ge=1, le=50),
    session_id: Optional[str] = Header(default=None, alias="X-Session-ID"),
):
    if not session_id:
        return _bad_request("X-Session-ID header is required")
    return _success(await _service(request).get_recommendation_history(session_id, limit))


@app.get("/api/history/preferences")
@timed
async def preferences(
    request: Request,
    session_id: Optional[str] = Header(default=None, alias="X-Session-ID"),
):
    if not session_id:
        return _bad_request("X-Session-ID header is required")
    return _success(await _service(request).get_preferences(session_id))
