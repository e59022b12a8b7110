"""
Client for the external movie-metadata provider (TMDB-shaped API).

Every call goes through `UpstreamClient.fetch`, which applies the request
timeout, the retry policy and the error classification, and never raises for
provider failures. The typed helpers unwrap the result and normalize it.
"""

import asyncio
from enum import Enum
from string import Formatter
from typing import Any, Awaitable, Callable, Optional

import httpx

from moviefinder.config import (DEFAULT_BASE_URL, DEFAULT_IMAGE_BASE_URL,
                                Settings)
from moviefinder.errors import ConfigurationError, ErrorKind, UpstreamError
from moviefinder.logger import logger
from moviefinder.models import (Filters, Genre, MovieDetails, MoviePage,
                                PersonDetails, PersonPage)
from moviefinder.upstream.formatting import PayloadFormatter
from moviefinder.upstream.retry import RetryPolicy, UpstreamResult, retry_call

USER_AGENT = "MovieFinder/1.0"
DETAILS_EXPANSIONS = "credits,videos,similar,reviews,keywords"


class Operation(str, Enum):
    SEARCH_MOVIE = "search-movie"
    MOVIE_DETAILS = "movie-details"
    DISCOVER_MOVIE = "discover-movie"
    GENRE_LIST = "genre-list"
    SEARCH_PERSON = "search-person"
    PERSON_DETAILS = "person-details"
    MOVIE_RECOMMENDATIONS = "movie-recommendations"
    MOVIE_SIMILAR = "movie-similar"
    POPULAR = "popular"
    TOP_RATED = "top-rated"
    NOW_PLAYING = "now-playing"
    UPCOMING = "upcoming"
    TRENDING = "trending"
    CONFIGURATION = "configuration"


OPERATION_PATHS = {
    Operation.SEARCH_MOVIE: "/search/movie",
    Operation.MOVIE_DETAILS: "/movie/{movie_id}",
    Operation.DISCOVER_MOVIE: "/discover/movie",
    Operation.GENRE_LIST: "/genre/movie/list",
    Operation.SEARCH_PERSON: "/search/person",
    Operation.PERSON_DETAILS: "/person/{person_id}",
    Operation.MOVIE_RECOMMENDATIONS: "/movie/{movie_id}/recommendations",
    Operation.MOVIE_SIMILAR: "/movie/{movie_id}/similar",
    Operation.POPULAR: "/movie/popular",
    Operation.TOP_RATED: "/movie/top_rated",
    Operation.NOW_PLAYING: "/movie/now_playing",
    Operation.UPCOMING: "/movie/upcoming",
    Operation.TRENDING: "/trending/movie/{time_window}",
    Operation.CONFIGURATION: "/configuration",
}

STATUS_KINDS = {
    401: ErrorKind.INVALID_CREDENTIALS,
    404: ErrorKind.NOT_FOUND,
    429: ErrorKind.RATE_LIMITED,
}


def classify_status(status_code: int) -> Optional[ErrorKind]:
    """Error kind of a provider response status, None for success."""
    if 200 <= status_code < 300:
        return None
    if status_code in STATUS_KINDS:
        return STATUS_KINDS[status_code]
    if status_code >= 500:
        return ErrorKind.UPSTREAM_SERVER_ERROR
    return ErrorKind.UPSTREAM_REJECTED


def _status_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(body, dict) and body.get("status_message"):
        return body["status_message"]
    return response.reason_phrase


def build_path(operation: Operation, params: dict) -> tuple[str, dict]:
    """Fill the operation's path template, returning the path and the leftover query params."""
    template = OPERATION_PATHS[operation]
    names = {name for _, name, _, _ in Formatter().parse(template) if name}
    missing = names - params.keys()
    if missing:
        raise ValueError(f"{operation.value} requires {sorted(missing)}")
    path = template.format(**{name: params[name] for name in names})
    query = {key: value for key, value in params.items() if key not in names and value is not None}
    return path, query


def discover_params(filters: Filters, page: int = 1) -> dict[str, Any]:
    params: dict[str, Any] = {"page": page, "sort_by": filters.sort_by or "popularity.desc"}
    if filters.genres:
        separator = "|" if filters.match_any_genre else ","
        params["with_genres"] = separator.join(str(genre_id) for genre_id in filters.genre_ids)
    if filters.year:
        params["year"] = filters.year
    if filters.min_rating is not None:
        params["vote_average.gte"] = filters.min_rating
    if filters.max_rating is not None:
        params["vote_average.lte"] = filters.max_rating
    if filters.min_votes is not None:
        params["vote_count.gte"] = filters.min_votes
    if filters.cast:
        params["with_cast"] = ",".join(map(str, filters.cast))
    if filters.keywords:
        params["with_keywords"] = ",".join(map(str, filters.keywords))
    if filters.language:
        params["with_original_language"] = filters.language
    if filters.release_date_from:
        params["release_date.gte"] = filters.release_date_from.isoformat()
    if filters.release_date_to:
        params["release_date.lte"] = filters.release_date_to.isoformat()
    if filters.include_adult:
        params["include_adult"] = True
    return params


def search_params(query: str, page: int = 1, filters: Optional[Filters] = None) -> dict[str, Any]:
    filters = filters or Filters()
    params: dict[str, Any] = {"query": query, "page": page, "include_adult": filters.include_adult}
    if filters.year:
        params["year"] = filters.year
    if filters.region:
        params["region"] = filters.region
    return params


class UpstreamClient:
    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        image_base_url: str = DEFAULT_IMAGE_BASE_URL,
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not api_key:
            raise ConfigurationError("TMDB_API_KEY is required to reach the movie provider")
        self.retry_policy = retry_policy or RetryPolicy()
        self.formatter = PayloadFormatter(image_base_url)
        self._sleep = sleep
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            params={"api_key": api_key},
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
            transport=transport,
        )
        logger.info(f"upstream client ready for {base_url} (timeout {timeout}s)")

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "UpstreamClient":
        return cls(
            settings.api_key,
            base_url=settings.base_url,
            image_base_url=settings.image_base_url,
            timeout=settings.timeout,
            retry_policy=RetryPolicy(
                max_retries=settings.max_retries, backoff_unit=settings.backoff_seconds
            ),
            **kwargs,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request_once(self, operation: Operation, path: str, query: dict) -> UpstreamResult:
        logger.debug(f"upstream request {operation.value} {path}")
        try:
            response = await self._http.get(path, params=query)
        except httpx.TimeoutException as exc:
            return UpstreamResult(error=UpstreamError(
                ErrorKind.TIMEOUT,
                f"provider took too long to respond: {exc!r}",
                operation=operation.value,
            ))
        except (httpx.NetworkError, httpx.RemoteProtocolError) as exc:
            return UpstreamResult(error=UpstreamError(
                ErrorKind.CONNECTION_UNSTABLE,
                f"connection to provider was interrupted: {exc!r}",
                operation=operation.value,
            ))
        except httpx.TransportError as exc:
            return UpstreamResult(error=UpstreamError(
                ErrorKind.UPSTREAM_REJECTED, f"transport error: {exc!r}", operation=operation.value
            ))

        kind = classify_status(response.status_code)
        if kind is not None:
            return UpstreamResult(error=UpstreamError(
                kind,
                _status_message(response),
                status_code=response.status_code,
                operation=operation.value,
            ))
        try:
            return UpstreamResult(payload=response.json())
        except ValueError:
            return UpstreamResult(error=UpstreamError(
                ErrorKind.UPSTREAM_REJECTED,
                "provider returned a body that is not JSON",
                status_code=response.status_code,
                operation=operation.value,
            ))

    async def fetch(self, operation: Operation, params: Optional[dict] = None) -> UpstreamResult:
        path, query = build_path(operation, params or {})
        outcome = await retry_call(
            lambda: self._request_once(operation, path, query),
            self.retry_policy,
            sleep=self._sleep,
            label=operation.value,
        )
        if not outcome.result.ok:
            logger.error(
                f"{operation.value} failed after {outcome.retries} retries: {outcome.result.error!r}"
            )
        return outcome.result

    async def _get(self, operation: Operation, normalize: Callable[[Any], Any], **params) -> Any:
        result = await self.fetch(operation, params)
        payload = result.unwrap()
        try:
            return normalize(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.error(f"{operation.value} returned an unexpected payload: {exc!r}")
            raise UpstreamError(
                ErrorKind.UPSTREAM_REJECTED,
                f"unexpected payload shape: {exc!r}",
                operation=operation.value,
            ) from exc

    async def search_movies(
        self, query: str, page: int = 1, filters: Optional[Filters] = None
    ) -> MoviePage:
        return await self._get(
            Operation.SEARCH_MOVIE, self.formatter.movie_page, **search_params(query, page, filters)
        )

    async def get_movie_details(self, movie_id: int) -> MovieDetails:
        return await self._get(
            Operation.MOVIE_DETAILS,
            self.formatter.movie_details,
            movie_id=movie_id,
            append_to_response=DETAILS_EXPANSIONS,
        )

    async def discover_movies(self, filters: Filters, page: int = 1) -> MoviePage:
        return await self._get(
            Operation.DISCOVER_MOVIE, self.formatter.movie_page, **discover_params(filters, page)
        )

    async def get_movies_by_genre(self, genre_id: int, page: int = 1) -> MoviePage:
        return await self.discover_movies(Filters(genres=(Genre(genre_id),)), page)

    async def list_genres(self) -> list[Genre]:
        return await self._get(Operation.GENRE_LIST, self.formatter.genres)

    async def search_people(self, query: str, page: int = 1) -> PersonPage:
        return await self._get(
            Operation.SEARCH_PERSON, self.formatter.person_page, query=query, page=page
        )

    async def get_person_details(self, person_id: int) -> PersonDetails:
        return await self._get(
            Operation.PERSON_DETAILS,
            self.formatter.person_details,
            person_id=person_id,
            append_to_response="movie_credits",
        )

    async def _movie_listing(self, operation: Operation, **params) -> MoviePage:
        return await self._get(operation, self.formatter.movie_page, **params)

    async def get_popular_movies(self, page: int = 1) -> MoviePage:
        return await self._movie_listing(Operation.POPULAR, page=page)

    async def get_top_rated_movies(self, page: int = 1) -> MoviePage:
        return await self._movie_listing(Operation.TOP_RATED, page=page)

    async def get_now_playing_movies(self, page: int = 1) -> MoviePage:
        return await self._movie_listing(Operation.NOW_PLAYING, page=page)

    async def get_upcoming_movies(self, page: int = 1) -> MoviePage:
        return await self._movie_listing(Operation.UPCOMING, page=page)

    async def get_trending_movies(self, time_window: str = "day", page: int = 1) -> MoviePage:
        return await self._movie_listing(Operation.TRENDING, time_window=time_window, page=page)

    async def get_movie_recommendations(self, movie_id: int, page: int = 1) -> MoviePage:
        return await self._movie_listing(Operation.MOVIE_RECOMMENDATIONS, movie_id=movie_id, page=page)

    async def get_similar_movies(self, movie_id: int, page: int = 1) -> MoviePage:
        return await self._movie_listing(Operation.MOVIE_SIMILAR, movie_id=movie_id, page=page)

    async def test_connection(self) -> bool:
        result = await self.fetch(Operation.CONFIGURATION)
        if result.ok:
            logger.info("provider connection test succeeded")
        return result.ok
