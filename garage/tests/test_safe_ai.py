import asyncio

import httpx
import pytest
from fastapi import HTTPException

from garage.app.services.safe_ai import (
    ACCESS_DENIED_MESSAGE,
    FALLBACK_MESSAGE,
    RATE_LIMITED_MESSAGE,
    TIMEOUT_MESSAGE,
    UNAVAILABLE_MESSAGE,
    safe_ai_call,
    to_readable_message,
)


class Flaky:
    """Fails `failures` times, then returns "ok"."""

    def __init__(self, failures: int, error: Exception):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def test_success_returns_data_and_latency():
    fn = Flaky(0, RuntimeError("unused"))
    result = asyncio.run(safe_ai_call(fn))

    assert result.ok
    assert result.data == "ok"
    assert result.error is None
    assert result.latency_ms >= 0
    assert fn.calls == 1


def test_retries_once_then_succeeds():
    fn = Flaky(1, httpx.ConnectError("refused"))
    result = asyncio.run(safe_ai_call(fn, max_retries=1))

    assert result.ok
    assert fn.calls == 2


def test_gives_up_after_max_retries():
    fn = Flaky(5, httpx.ConnectError("refused"))
    result = asyncio.run(safe_ai_call(fn, max_retries=2))

    assert not result.ok
    assert result.data is None
    assert result.error == UNAVAILABLE_MESSAGE
    assert fn.calls == 3


def test_no_retry_when_disabled():
    fn = Flaky(1, RuntimeError("boom"))
    result = asyncio.run(safe_ai_call(fn, max_retries=0))

    assert result.error == FALLBACK_MESSAGE
    assert fn.calls == 1


def test_timeout_is_reported():
    async def slow():
        await asyncio.sleep(1)
        return "late"

    result = asyncio.run(safe_ai_call(slow, timeout_seconds=0.01, max_retries=0))

    assert result.error == TIMEOUT_MESSAGE


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "http://provider.test/chat/completions")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


@pytest.mark.parametrize(
    "exc, expected",
    [
        (asyncio.TimeoutError(), TIMEOUT_MESSAGE),
        (httpx.ReadTimeout("slow"), TIMEOUT_MESSAGE),
        (httpx.ConnectError("refused"), UNAVAILABLE_MESSAGE),
        (_status_error(429), RATE_LIMITED_MESSAGE),
        (_status_error(401), ACCESS_DENIED_MESSAGE),
        (_status_error(500), FALLBACK_MESSAGE),
        (HTTPException(status_code=504, detail={"code": "PROVIDER_TIMEOUT"}), TIMEOUT_MESSAGE),
        (HTTPException(status_code=503, detail={"code": "PROVIDER_UNREACHABLE"}), UNAVAILABLE_MESSAGE),
        (HTTPException(status_code=502, detail={"code": "PROVIDER_AUTH_FAILED"}), ACCESS_DENIED_MESSAGE),
        (HTTPException(status_code=502, detail={"code": "PROVIDER_ERROR"}), FALLBACK_MESSAGE),
        (ValueError("bad json"), FALLBACK_MESSAGE),
        (None, FALLBACK_MESSAGE),
    ],
)
def test_readable_messages(exc, expected):
    assert to_readable_message(exc) == expected
