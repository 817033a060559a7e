"""In-memory sliding-window rate limiter for login attempts. State is lost on restart."""

from __future__ import annotations

from collections import deque
from datetime import UTC, datetime


class InMemoryRateLimiter:
    """Track failed attempts per key in an in-memory sliding window.

    Safe under asyncio's single-threaded cooperative model: the check-and-act
    methods have no await points between read and mutation. Not safe to share
    across OS threads.
    """

    def __init__(self) -> None:
        self._failures: dict[str, deque[float]] = {}

    def clear(self, key: str) -> None:
        """Forget all failures for a key."""
        self._failures.pop(key, None)

    def _window(self, key: str, window_seconds: int, now: float) -> deque[float] | None:
        failures = self._failures.get(key)
        if failures is None:
            return None
        cutoff = now - window_seconds
        while failures and failures[0] < cutoff:
            failures.popleft()
        if not failures:
            del self._failures[key]
            return None
        return failures

    def is_limited(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        """Check if the key is rate-limited. Returns (is_limited, retry_after_seconds)."""
        now = datetime.now(UTC).timestamp()
        failures = self._window(key, window_seconds, now)
        if failures is None or len(failures) < limit:
            return False, 0
        retry_after = int(failures[0] + window_seconds - now) + 1
        return True, max(retry_after, 1)

    def add_failure(self, key: str, window_seconds: int) -> None:
        """Record one failed attempt."""
        now = datetime.now(UTC).timestamp()
        failures = self._window(key, window_seconds, now)
        if failures is None:
            failures = self._failures[key] = deque()
        failures.append(now)
