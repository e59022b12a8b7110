"""
Runtime configuration read from environment variables.
"""

import os
from typing import Mapping, NamedTuple, Optional

DEFAULT_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"


class Settings(NamedTuple):
    api_key: Optional[str]
    base_url: str = DEFAULT_BASE_URL
    image_base_url: str = DEFAULT_IMAGE_BASE_URL
    timeout: float = 30.0
    max_retries: int = 3
    backoff_seconds: float = 2.0
    postgres_uri: Optional[str] = None
    retention_sweep_seconds: float = 3600.0


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None or value == "":
        return default
    return float(value)


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value == "":
        return default
    return int(value)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    return Settings(
        api_key=env.get("TMDB_API_KEY") or None,
        base_url=(env.get("TMDB_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
        image_base_url=(env.get("TMDB_IMAGE_BASE_URL") or DEFAULT_IMAGE_BASE_URL).rstrip("/"),
        timeout=_get_float(env, "TMDB_TIMEOUT", 30.0),
        max_retries=_get_int(env, "TMDB_MAX_RETRIES", 3),
        backoff_seconds=_get_float(env, "TMDB_BACKOFF_SECONDS", 2.0),
        postgres_uri=env.get("POSTGRES_URI") or None,
        retention_sweep_seconds=_get_float(env, "RETENTION_SWEEP_SECONDS", 3600.0),
    )
