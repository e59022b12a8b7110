"""
Retry policy for upstream calls.

A call is retried only while its error kind is retryable and the retry cap
has not been reached. Delays grow linearly: `backoff_unit * attempt`.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, NamedTuple, Optional

from moviefinder.errors import ErrorKind, UpstreamError
from moviefinder.logger import logger


RETRYABLE_KINDS = frozenset({ErrorKind.CONNECTION_UNSTABLE, ErrorKind.UPSTREAM_SERVER_ERROR})


class UpstreamResult(NamedTuple):
    payload: Any = None
    error: Optional[UpstreamError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.payload


class RetryOutcome(NamedTuple):
    result: UpstreamResult
    delays: list[float]

    @property
    def retries(self) -> int:
        return len(self.delays)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    backoff_unit: float = 2.0
    retryable_kinds: frozenset = RETRYABLE_KINDS

    def delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        return self.backoff_unit * attempt

    def should_retry(self, error: UpstreamError, attempt: int) -> bool:
        return error.kind in self.retryable_kinds and attempt <= self.max_retries


async def retry_call(
    call: Callable[[], Awaitable[UpstreamResult]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "upstream call",
) -> RetryOutcome:
    delays = []
    attempt = 0
    while True:
        result = await call()
        if result.ok:
            return RetryOutcome(result, delays)
        attempt += 1
        if not policy.should_retry(result.error, attempt):
            return RetryOutcome(result, delays)
        delay = policy.delay(attempt)
        logger.warning(
            f"retrying {label} ({attempt}/{policy.max_retries}) in {delay:.1f}s "
            f"after {result.error.kind.value}"
        )
        delays.append(delay)
        await sleep(delay)
