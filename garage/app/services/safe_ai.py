"""Guarded AI provider calls: timeout, bounded retry, latency, readable errors."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import httpx
from fastapi import HTTPException

logger = logging.getLogger("garage.ai")

T = TypeVar("T")

FALLBACK_MESSAGE = "Automatic generation failed. You can continue manually."
TIMEOUT_MESSAGE = "Request timed out. Please retry."
UNAVAILABLE_MESSAGE = "Service temporarily unavailable."
RATE_LIMITED_MESSAGE = "Too many requests. Please retry later."
ACCESS_DENIED_MESSAGE = "Access to the AI service was denied."


@dataclass
class SafeAiResult(Generic[T]):
    latency_ms: int
    data: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _status_of(exc: BaseException) -> int | None:
    if isinstance(exc, HTTPException):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def to_readable_message(exc: BaseException | None) -> str:
    """Map a provider failure to a message safe to show to the garage user."""
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return TIMEOUT_MESSAGE
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return UNAVAILABLE_MESSAGE

    status = _status_of(exc) if exc is not None else None
    if status == 504:
        return TIMEOUT_MESSAGE
    if status == 503:
        return UNAVAILABLE_MESSAGE
    if status == 429:
        return RATE_LIMITED_MESSAGE
    if status in (401, 403):
        return ACCESS_DENIED_MESSAGE
    if isinstance(exc, HTTPException) and isinstance(exc.detail, dict):
        if exc.detail.get("code") == "PROVIDER_AUTH_FAILED":
            return ACCESS_DENIED_MESSAGE
    return FALLBACK_MESSAGE


async def safe_ai_call(
    fn: Callable[[], Awaitable[T]],
    timeout_seconds: float = 30,
    max_retries: int = 1,
    feature: str | None = None,
) -> SafeAiResult[T]:
    """Run `fn` with a timeout and at most `max_retries` retries.

    Never raises for provider failures; the error is returned as a readable
    message without a stack trace.
    """
    start = time.perf_counter()
    last_error: BaseException | None = None

    for attempt in range(max_retries + 1):
        try:
            result = await asyncio.wait_for(fn(), timeout=timeout_seconds)
            return SafeAiResult(latency_ms=_elapsed_ms(start), data=result)
        except Exception as exc:
            last_error = exc
            logger.warning(
                "AI call attempt failed",
                extra={"feature": feature, "attempt": attempt + 1, "error_type": type(exc).__name__},
            )

    return SafeAiResult(latency_ms=_elapsed_ms(start), error=to_readable_message(last_error))


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)

