import json
import math

import pytest

from fakes import movie
from moviefinder.models import Filters, Genre, MovieDetails
from moviefinder.scoring import score
from moviefinder.upstream.formatting import PayloadFormatter


def test_score_formula():
    candidate = movie(1, genre_ids=(28,), rating=8.0, popularity=50.0)
    filters = Filters(genres=(Genre(28), Genre(12)))
    assert score(candidate, filters) == pytest.approx(0.15 + 0.32 + 0.15)


def test_score_without_filter_genres_has_no_genre_term():
    candidate = movie(1, genre_ids=(28,), rating=5.0, popularity=20.0)
    assert score(candidate, Filters()) == pytest.approx(0.06 + 0.2)


def test_score_popularity_saturates():
    candidate = movie(1, genre_ids=(28,), rating=10.0, popularity=5000.0)
    assert score(candidate, Filters(genres=(Genre(28),))) == pytest.approx(1.0)


def test_score_matches_genre_names():
    candidate = MovieDetails(id=1, title="Heat", rating=0.0, genres=(Genre(80, "Crime"),))
    assert score(candidate, Filters(genres=(Genre(999, "Crime"),))) == pytest.approx(0.3)


def test_score_is_bounded():
    filters = Filters(genres=(Genre(28), Genre(35)))
    for popularity in (0.0, 1.0, 99.9, 100.0, 10_000.0):
        for rating in (0.0, 3.3, 10.0):
            for genre_ids in ((), (28,), (28, 35), (28, 35, 18)):
                value = score(movie(1, genre_ids, rating, popularity), filters)
                assert 0.0 <= value <= 1.0


def test_non_finite_payload_numbers_score_in_bounds():
    formatter = PayloadFormatter()
    candidate = formatter.movie_summary(
        json.loads('{"id": 1, "title": "x", "popularity": NaN, "vote_average": Infinity}')
    )
    assert candidate.popularity == 0.0
    assert candidate.rating == 0.0
    value = score(candidate, Filters(genres=(Genre(28),)))
    assert math.isfinite(value)
    assert 0.0 <= value <= 1.0


def test_non_finite_candidate_fields_score_in_bounds():
    candidate = movie(1, genre_ids=(28,), rating=float("nan"), popularity=float("inf"))
    value = score(candidate, Filters(genres=(Genre(28),)))
    assert value == pytest.approx(0.3)
