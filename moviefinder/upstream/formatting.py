"""
Normalization of raw provider payloads into the data models.

Absent collections become empty tuples and image paths become absolute URLs.
"""

import math
from datetime import date
from typing import Any, Optional

from moviefinder.config import DEFAULT_IMAGE_BASE_URL
from moviefinder.models import (MAX_CAST, MAX_CREW, MAX_SIMILAR, MAX_VIDEOS,
                                CastMember, CrewCredit, CrewMember, Genre,
                                KnownFor, MovieDetails, MoviePage,
                                MovieSummary, PersonDetails, PersonPage,
                                PersonSummary, Video)

POSTER_SIZE = "w500"
BACKDROP_SIZE = "w1280"
PROFILE_SIZE = "w185"


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _number(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _list(payload: dict, key: str) -> list:
    value = payload.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if item is not None]


def _entries(payload: dict, key: str) -> list[dict]:
    """Items of a list field that carry an id, other entries are dropped."""
    return [
        item for item in _list(payload, key)
        if isinstance(item, dict) and item.get("id") is not None
    ]


class PayloadFormatter:
    def __init__(
        self,
        image_base_url: str = DEFAULT_IMAGE_BASE_URL,
        poster_size: str = POSTER_SIZE,
        backdrop_size: str = BACKDROP_SIZE,
        profile_size: str = PROFILE_SIZE,
    ):
        self.image_base_url = image_base_url.rstrip("/")
        self.poster_size = poster_size
        self.backdrop_size = backdrop_size
        self.profile_size = profile_size

    def image_url(self, image_path: Optional[str], size: Optional[str] = None) -> Optional[str]:
        if not image_path:
            return None
        return f"{self.image_base_url}/{size or self.poster_size}{image_path}"

    def movie_summary(self, movie: dict) -> MovieSummary:
        genre_ids = _list(movie, "genre_ids")
        if not genre_ids:
            # full movie objects carry `genres` instead of `genre_ids`
            genre_ids = [genre["id"] for genre in _entries(movie, "genres")]
        return MovieSummary(
            id=int(movie["id"]),
            title=movie.get("title") or movie.get("name") or "",
            overview=movie.get("overview") or "",
            release_date=_parse_date(movie.get("release_date")),
            rating=_number(movie.get("vote_average")),
            vote_count=int(_number(movie.get("vote_count"))),
            popularity=max(_number(movie.get("popularity")), 0.0),
            poster_path=self.image_url(movie.get("poster_path"), self.poster_size),
            backdrop_path=self.image_url(movie.get("backdrop_path"), self.backdrop_size),
            genre_ids=tuple(int(genre_id) for genre_id in genre_ids),
            adult=bool(movie.get("adult", False)),
            original_language=movie.get("original_language"),
            original_title=movie.get("original_title"),
        )

    def movie_page(self, payload: dict) -> MoviePage:
        return MoviePage(
            page=int(payload.get("page") or 1),
            total_pages=int(payload.get("total_pages") or 0),
            total_results=int(payload.get("total_results") or 0),
            movies=[self.movie_summary(movie) for movie in _entries(payload, "results")],
        )

    def genres(self, payload: dict) -> list[Genre]:
        return [
            Genre(id=int(genre["id"]), name=genre.get("name") or "")
            for genre in _entries(payload, "genres")
        ]

    def movie_details(self, movie: dict) -> MovieDetails:
        summary = self.movie_summary(movie)
        credits = movie.get("credits") or {}
        crew = _entries(credits, "crew")
        director = next((person.get("name") for person in crew if person.get("job") == "Director"), None)
        similar = _entries(movie.get("similar") or {}, "results")[:MAX_SIMILAR]
        videos = [
            video for video in _list(movie.get("videos") or {}, "results")
            if video.get("site") == "YouTube"
        ][:MAX_VIDEOS]
        keywords = _list(movie.get("keywords") or {}, "keywords")
        return MovieDetails(
            **summary.__dict__,
            genres=tuple(self.genres(movie)),
            runtime=movie.get("runtime"),
            tagline=movie.get("tagline"),
            homepage=movie.get("homepage"),
            status=movie.get("status"),
            imdb_id=movie.get("imdb_id"),
            budget=int(_number(movie.get("budget"))),
            revenue=int(_number(movie.get("revenue"))),
            cast=tuple(
                CastMember(
                    person_id=int(person["id"]),
                    name=person.get("name") or "",
                    character=person.get("character"),
                    profile_path=self.image_url(person.get("profile_path"), self.profile_size),
                )
                for person in _entries(credits, "cast")[:MAX_CAST]
            ),
            crew=tuple(
                CrewMember(
                    person_id=int(person["id"]),
                    name=person.get("name") or "",
                    job=person.get("job"),
                    department=person.get("department"),
                    profile_path=self.image_url(person.get("profile_path"), self.profile_size),
                )
                for person in crew[:MAX_CREW]
            ),
            director=director,
            similar=tuple(self.movie_summary(item) for item in similar),
            keywords=tuple(keyword.get("name") or "" for keyword in keywords),
            videos=tuple(
                Video(
                    key=video.get("key") or "",
                    name=video.get("name") or "",
                    site=video["site"],
                    type=video.get("type"),
                )
                for video in videos
            ),
        )

    def _known_for(self, item: dict) -> KnownFor:
        return KnownFor(
            id=int(item["id"]),
            title=item.get("title") or item.get("name"),
            media_type=item.get("media_type"),
            poster_path=self.image_url(item.get("poster_path"), self.poster_size),
            release_date=_parse_date(item.get("release_date") or item.get("first_air_date")),
        )

    def person_summary(self, person: dict) -> PersonSummary:
        return PersonSummary(
            id=int(person["id"]),
            name=person.get("name") or "",
            popularity=_number(person.get("popularity")),
            profile_path=self.image_url(person.get("profile_path"), self.profile_size),
            known_for_department=person.get("known_for_department"),
            known_for=tuple(self._known_for(item) for item in _entries(person, "known_for")),
        )

    def person_page(self, payload: dict) -> PersonPage:
        return PersonPage(
            page=int(payload.get("page") or 1),
            total_pages=int(payload.get("total_pages") or 0),
            total_results=int(payload.get("total_results") or 0),
            people=[self.person_summary(person) for person in _entries(payload, "results")],
        )

    def person_details(self, person: dict) -> PersonDetails:
        credits = person.get("movie_credits") or {}
        return PersonDetails(
            id=int(person["id"]),
            name=person.get("name") or "",
            biography=person.get("biography") or "",
            birthday=_parse_date(person.get("birthday")),
            deathday=_parse_date(person.get("deathday")),
            place_of_birth=person.get("place_of_birth"),
            popularity=_number(person.get("popularity")),
            profile_path=self.image_url(person.get("profile_path"), self.profile_size),
            known_for_department=person.get("known_for_department"),
            cast_credits=tuple(self.movie_summary(movie) for movie in _entries(credits, "cast")),
            crew_credits=tuple(
                CrewCredit(
                    movie=self.movie_summary(movie),
                    job=movie.get("job"),
                    department=movie.get("department"),
                )
                for movie in _entries(credits, "crew")
            ),
        )
