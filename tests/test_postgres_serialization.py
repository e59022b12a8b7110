from datetime import date

from moviefinder.db.postgres import filters_from_json, filters_to_json, movie_from_json, movie_to_json
from moviefinder.models import Filters, Genre, MovieSummary


def test_filters_snapshot_drops_unset_values():
    snapshot = filters_to_json(Filters(genres=(Genre(28, "Action"),), min_rating=7.0))
    assert snapshot == {
        "genres": [{"id": 28, "name": "Action"}],
        "min_rating": 7.0,
        "sort_by": "popularity.desc",
    }
    assert filters_from_json(snapshot).genres == (Genre(28, "Action"),)
    assert filters_from_json({}) == Filters()


def test_stored_movie_keeps_listing_fields():
    movie = MovieSummary(
        id=603,
        title="The Matrix",
        overview="long text that is not stored",
        release_date=date(1999, 3, 30),
        rating=8.2,
        genre_ids=(28, 878),
    )
    stored = movie_from_json(movie_to_json(movie))
    assert stored.id == 603
    assert stored.release_date == date(1999, 3, 30)
    assert stored.genre_ids == (28, 878)
    assert stored.overview == ""
