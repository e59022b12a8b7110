"""
Miscelaneous utilities.
"""

import time
from datetime import datetime, timezone
from functools import wraps
from typing import Callable

from moviefinder.logger import logger

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timed(func) -> Callable:
    @wraps(func)
    async def timed_func(*args, **kwargs):
        init = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            end = time.perf_counter() - init
            logger.info(f"{func.__name__} finished in {1000 * end:.2f} ms")
    return timed_func


def truncate(text: str, max_length: int) -> str:
    return text.strip()[:max_length]
