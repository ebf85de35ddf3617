"""Sliding-window request admission control.

One limiter instance is constructed per provider and injected into the
client that needs it. State is in-process only: a restart resets the
window, and separately scaled processes each enforce the quota on their
own.
"""

from __future__ import annotations

import math
import time
from collections import deque
from typing import Callable


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SlidingWindowRateLimiter:
    """Admits at most N requests in any trailing window of W milliseconds.

    Timestamps of admitted requests are kept oldest-first and pruned lazily
    on every check. No awaits happen between the check and the record, so a
    single instance is safe to share across coroutines on one event loop.

    Parameters
    ----------
    clock : Callable[[], float] | None
        Returns the current time in milliseconds. Defaults to a monotonic
        clock; tests pass a fake.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or _monotonic_ms
        self._requests: deque[float] = deque()

    def can_make_request(self, max_requests: int, window_ms: int) -> bool:
        """Record and admit a request if the window has room.

        Returns False without recording anything when the window is full.
        """
        _check_policy(max_requests, window_ms)
        now = self._clock()
        self._prune(now, window_ms)

        if len(self._requests) >= max_requests:
            return False

        self._requests.append(now)
        return True

    def get_wait_time(self, max_requests: int, window_ms: int) -> int:
        """Milliseconds until the next request would be admitted (0 if now).

        Prunes like ``can_make_request`` but never records a request.
        """
        _check_policy(max_requests, window_ms)
        now = self._clock()
        self._prune(now, window_ms)

        if len(self._requests) < max_requests:
            return 0

        oldest = self._requests[0]
        return math.ceil(window_ms - (now - oldest))

    @property
    def pending(self) -> int:
        """Number of timestamps currently held (before pruning)."""
        return len(self._requests)

    def _prune(self, now: float, window_ms: int) -> None:
        while self._requests and now - self._requests[0] >= window_ms:
            self._requests.popleft()


def _check_policy(max_requests: int, window_ms: int) -> None:
    if max_requests < 1:
        raise ValueError(f"max_requests must be >= 1, got {max_requests}")
    if window_ms < 1:
        raise ValueError(f"window_ms must be >= 1, got {window_ms}")
