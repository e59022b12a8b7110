import asyncio

from moviefinder.errors import ErrorKind, UpstreamError
from moviefinder.upstream.retry import RetryPolicy, UpstreamResult, retry_call


class ScriptedCall:
    """Returns the given errors in order, then a successful result."""

    def __init__(self, *kinds):
        self.kinds = list(kinds)
        self.calls = 0

    async def __call__(self) -> UpstreamResult:
        self.calls += 1
        if self.kinds:
            kind = self.kinds.pop(0)
            return UpstreamResult(error=UpstreamError(kind, kind.value))
        return UpstreamResult(payload={"ok": True})


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_linear_backoff_then_success():
    call = ScriptedCall(*[ErrorKind.CONNECTION_UNSTABLE] * 3)
    sleep = RecordingSleep()
    outcome = asyncio.run(retry_call(call, RetryPolicy(), sleep=sleep))
    assert outcome.result.ok
    assert outcome.result.payload == {"ok": True}
    assert outcome.retries == 3
    assert outcome.delays == [2.0, 4.0, 6.0]
    assert sleep.delays == [2.0, 4.0, 6.0]
    assert call.calls == 4


def test_retries_are_capped():
    call = ScriptedCall(*[ErrorKind.UPSTREAM_SERVER_ERROR] * 10)
    sleep = RecordingSleep()
    outcome = asyncio.run(retry_call(call, RetryPolicy(), sleep=sleep))
    assert not outcome.result.ok
    assert outcome.result.error.kind is ErrorKind.UPSTREAM_SERVER_ERROR
    assert call.calls == 4
    assert sleep.delays == [2.0, 4.0, 6.0]


def test_non_retryable_kinds_fail_immediately():
    for kind in (
        ErrorKind.INVALID_CREDENTIALS,
        ErrorKind.TIMEOUT,
        ErrorKind.NOT_FOUND,
        ErrorKind.RATE_LIMITED,
    ):
        call = ScriptedCall(kind)
        sleep = RecordingSleep()
        outcome = asyncio.run(retry_call(call, RetryPolicy(), sleep=sleep))
        assert outcome.result.error.kind is kind
        assert outcome.retries == 0
        assert call.calls == 1
        assert sleep.delays == []


def test_custom_policy():
    policy = RetryPolicy(max_retries=1, backoff_unit=0.5)
    call = ScriptedCall(ErrorKind.CONNECTION_UNSTABLE, ErrorKind.CONNECTION_UNSTABLE)
    outcome = asyncio.run(retry_call(call, policy, sleep=RecordingSleep()))
    assert not outcome.result.ok
    assert outcome.delays == [0.5]


def test_unwrap_raises_the_error():
    error = UpstreamError(ErrorKind.NOT_FOUND, "missing")
    result = UpstreamResult(error=error)
    try:
        result.unwrap()
    except UpstreamError as exc:
        assert exc is error
    else:
        raise AssertionError("unwrap should raise")


def test_retryable_kinds():
    assert UpstreamError(ErrorKind.CONNECTION_UNSTABLE, "reset").retryable
    assert UpstreamError(ErrorKind.UPSTREAM_SERVER_ERROR, "502").retryable
    assert not UpstreamError(ErrorKind.RATE_LIMITED, "429").retryable
    assert not UpstreamError(ErrorKind.INVALID_CREDENTIALS, "401").retryable
    assert UpstreamError(ErrorKind.INVALID_CREDENTIALS, "401").fatal
