import pytest
from fastapi.testclient import TestClient

from fakes import FakeClient, FakeClock, details, movie, upstream_error
from moviefinder.db.memory import MemoryBackend
from moviefinder.errors import ErrorKind
from moviefinder.interactions import InteractionStore
from moviefinder.main import app
from moviefinder.models import Genre
from moviefinder.service import MovieService

SESSION = {"X-Session-ID": "session-1"}


@pytest.fixture
def fake_client():
    return FakeClient(
        movies={603: details(603, genres=(Genre(28, "Action"),), similar=[movie(604)])},
        popular=[movie(1), movie(2)],
        search=[movie(155, genre_ids=(28,))],
    )


@pytest.fixture
def api(fake_client):
    store = InteractionStore(MemoryBackend(), clock=FakeClock())
    app.state.service = MovieService(fake_client, store)
    app.state.pool = None
    return TestClient(app)


def test_health(api):
    response = api.get("/api/health")
    assert response.status_code == 200
    assert response.json()["database"] == "memory"


def test_popular_movies(api):
    response = api.get("/api/movies/popular")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert [item["id"] for item in body["data"]["movies"]] == [1, 2]


def test_recommendations(api):
    response = api.get("/api/movies/603/recommendations")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["based_on"]["recommendation_type"] == "similar"
    assert data["based_on"]["movie_title"] == "Seed 603"
    assert [item["id"] for item in data["movies"]] == [604]


def test_recommendations_unknown_movie(api):
    response = api.get("/api/movies/999999999/recommendations")
    assert response.status_code == 404
    assert response.json() == {"status": "error", "kind": "not_found", "message": "Movie not found"}


def test_invalid_movie_id(api):
    assert api.get("/api/movies/0").status_code == 422


def test_rate_limited_upstream(api, fake_client):
    fake_client.popular_error = upstream_error(ErrorKind.RATE_LIMITED)
    response = api.get("/api/movies/popular")
    assert response.status_code == 429
    assert response.json()["kind"] == "rate_limited"


def test_search_then_click(api):
    response = api.get("/api/movies/search", params={"q": "batman"}, headers=SESSION)
    assert response.status_code == 200
    assert response.json()["query"] == "batman"

    body = {"interaction_type": "clickedMovies", "movie_id": 155, "search_query": "batman"}
    for _ in range(2):
        response = api.post("/api/interactions", json=body, headers=SESSION)
        assert response.status_code == 200
        assert response.json()["data"] == {"recorded": True}

    history = api.get("/api/history/searches", headers=SESSION).json()["data"]
    assert history[0]["interaction"]["clickedMovies"] == [155]


def test_interaction_requires_session(api):
    body = {"interaction_type": "clickedMovies", "movie_id": 155, "search_query": "batman"}
    assert api.post("/api/interactions", json=body).status_code == 400


def test_unknown_interaction_type(api):
    body = {"interaction_type": "bookmarked", "movie_id": 155, "search_query": "batman"}
    assert api.post("/api/interactions", json=body, headers=SESSION).status_code == 400


def test_blank_search_query(api):
    assert api.get("/api/movies/search", params={"q": "   "}).status_code == 400


def test_preferences_without_history(api):
    response = api.get("/api/history/preferences", headers=SESSION)
    assert response.status_code == 200
    assert response.json()["data"] is None


def test_feedback_with_search_query_only(api):
    body = {"interaction_type": "liked", "movie_id": 604, "search_query": "batman"}
    response = api.post("/api/interactions", json=body, headers=SESSION)
    assert response.status_code == 400
    assert response.json()["message"] == "feedback interactions need seed_movie_id"


def test_feedback_after_recommendations(api):
    api.get("/api/movies/603/recommendations", headers=SESSION)
    body = {"interaction_type": "liked", "movie_id": 604, "seed_movie_id": 603, "search_query": "x"}
    response = api.post("/api/interactions", json=body, headers=SESSION)
    assert response.json()["data"] == {"recorded": True}
