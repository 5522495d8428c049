from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from garage.app.config.settings import settings


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


class RateLimitStore(Protocol):
    """Storage for per-garage windows.

    `lock` must be held around a get/set pair so a check-and-consume is atomic.
    """

    lock: threading.Lock

    def get(self, key: str) -> Optional[RateLimitEntry]:
        ...

    def set(self, key: str, entry: RateLimitEntry) -> None:
        ...

    def clear(self) -> None:
        ...

    def __len__(self) -> int:
        ...


class InMemoryRateLimitStore:
    """Process-local store.

    Entries are never evicted: one per garage ever seen. Acceptable for a
    small tenant set; multi-instance deployments need a shared store instead.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self._entries: Dict[str, RateLimitEntry] = {}

    def get(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        self._entries[key] = entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RateLimiter:
    """Per-garage fixed-window counter for AI feature calls.

    A window opens on the first request and lasts `window_seconds`; up to
    `max_requests` are admitted inside it. This is not a sliding log, so a
    burst of up to 2 x max_requests can straddle a window boundary.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    @property
    def store(self) -> RateLimitStore:
        return self._store

    def check_and_consume(self, garage_id: str) -> bool:
        """Consume one request for the garage. Returns False when the window is full."""
        now = self._clock()
        with self._store.lock:
            entry = self._store.get(garage_id)
            if entry is None or now > entry.reset_at:
                self._store.set(garage_id, RateLimitEntry(count=1, reset_at=now + self.window_seconds))
                return True
            if entry.count >= self.max_requests:
                return False
            entry.count += 1
            return True

    def reset(self) -> None:
        """Forget every window (tests, redeploys)."""
        with self._store.lock:
            self._store.clear()


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter built from settings on first use."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(
            max_requests=settings.ai_rate_limit_max_requests,
            window_seconds=settings.ai_rate_limit_window_seconds,
        )
    return _rate_limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Replace the process-wide limiter; None rebuilds it from settings on next use."""
    global _rate_limiter
    _rate_limiter = limiter
