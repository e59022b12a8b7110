from moviefinder.config import DEFAULT_BASE_URL, load_settings


def test_defaults():
    settings = load_settings({})
    assert settings.api_key is None
    assert settings.base_url == DEFAULT_BASE_URL
    assert settings.timeout == 30.0
    assert settings.max_retries == 3
    assert settings.backoff_seconds == 2.0
    assert settings.postgres_uri is None


def test_environment_overrides():
    settings = load_settings({
        "TMDB_API_KEY": "secret",
        "TMDB_BASE_URL": "http://localhost:8080/3/",
        "TMDB_TIMEOUT": "5",
        "TMDB_MAX_RETRIES": "1",
        "TMDB_BACKOFF_SECONDS": "",
        "POSTGRES_URI": "postgresql://localhost/movies",
    })
    assert settings.api_key == "secret"
    assert settings.base_url == "http://localhost:8080/3"
    assert settings.timeout == 5.0
    assert settings.max_retries == 1
    assert settings.backoff_seconds == 2.0
    assert settings.postgres_uri == "postgresql://localhost/movies"
