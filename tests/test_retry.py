import asyncio

import httpx
import pytest

from storefront.utils import retry
from storefront.utils.retry import Err, FetchErrorKind, MalformedPayload, Ok, classify_exception, resilient_call


class Recorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def http_error(status):
    request = httpx.Request("GET", "https://api.example.com/products")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


@pytest.mark.asyncio
async def test_success_on_first_attempt():
    sleep = Recorder()

    async def operation():
        return [1, 2, 3]

    result = await resilient_call(operation, max_retries=2, timeout=1.0, sleep=sleep)
    assert result == Ok([1, 2, 3])
    assert result.ok
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_retries_with_exponential_backoff():
    sleep = Recorder()
    attempts = []

    async def operation():
        attempts.append(1)
        if len(attempts) < 3:
            raise httpx.ConnectError("refused")
        return "ok"

    result = await resilient_call(operation, max_retries=2, timeout=1.0, base_delay=0.5, sleep=sleep)
    assert result == Ok("ok")
    assert len(attempts) == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_exhaustion_returns_last_failure():
    sleep = Recorder()
    statuses = iter([500, 502, 503])

    async def operation():
        raise http_error(next(statuses))

    result = await resilient_call(operation, max_retries=2, timeout=1.0, base_delay=0.1, sleep=sleep)
    assert isinstance(result, Err)
    assert not result.ok
    assert result.error.kind is FetchErrorKind.HTTP_STATUS
    assert result.error.status_code == 503
    assert sleep.delays == [0.1, 0.2]


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt():
    sleep = Recorder()
    calls = []

    async def operation():
        calls.append(1)
        raise httpx.ReadError("reset")

    result = await resilient_call(operation, max_retries=0, timeout=1.0, sleep=sleep)
    assert isinstance(result, Err)
    assert result.error.kind is FetchErrorKind.NETWORK
    assert len(calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_always_timing_out_takes_three_attempts_with_backoff():
    async def operation():
        await asyncio.sleep(10)

    loop = asyncio.get_running_loop()
    started = loop.time()
    result = await resilient_call(operation, max_retries=2, timeout=0.1, base_delay=0.1)
    elapsed = loop.time() - started

    assert isinstance(result, Err)
    assert result.error.kind is FetchErrorKind.TIMEOUT
    # 3 x 100ms attempts + 100ms + 200ms backoff
    assert 0.55 <= elapsed < 0.95


@pytest.mark.asyncio
async def test_timed_out_attempt_is_cancelled():
    cancelled = []

    async def operation():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    result = await resilient_call(operation, max_retries=0, timeout=0.05)
    assert isinstance(result, Err)
    assert cancelled == [True]


@pytest.mark.asyncio
async def test_invalid_arguments():
    async def operation():
        return None

    with pytest.raises(ValueError):
        await resilient_call(operation, max_retries=-1)
    with pytest.raises(ValueError):
        await resilient_call(operation, timeout=0)


def test_classify_exception():
    assert classify_exception(asyncio.TimeoutError()).kind is FetchErrorKind.TIMEOUT
    assert classify_exception(httpx.ReadTimeout("slow")).kind is FetchErrorKind.TIMEOUT
    assert classify_exception(http_error(404)).status_code == 404
    assert classify_exception(httpx.ConnectError("down")).kind is FetchErrorKind.NETWORK
    assert classify_exception(MalformedPayload("bad")).kind is FetchErrorKind.MALFORMED
    assert classify_exception(ValueError("Expecting value")).kind is FetchErrorKind.MALFORMED
    assert classify_exception(RuntimeError("weird")).kind is FetchErrorKind.NETWORK


def test_fetch_error_str():
    assert str(classify_exception(http_error(503))) == "http_status(503)"


@pytest.mark.asyncio
async def test_jitter_is_added_to_the_backoff(monkeypatch):
    monkeypatch.setattr(retry.random, "uniform", lambda low, high: high)
    sleep = Recorder()

    async def operation():
        raise httpx.ConnectError("refused")

    result = await resilient_call(operation, max_retries=2, timeout=1.0, base_delay=0.5, jitter=0.25, sleep=sleep)
    assert isinstance(result, Err)
    assert sleep.delays == [0.75, 1.25]
