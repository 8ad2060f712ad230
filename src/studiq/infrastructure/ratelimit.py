# src/studiq/infrastructure/ratelimit.py
"""
Fixed-window, per-key request limiter kept in memory.

Windows that have ended are dropped by a periodic cleanup task owned by the
limiter (`start()` / `stop()`), so keys that never come back do not pile up.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

log = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._cleanup_task: Optional[asyncio.Task] = None

    def check(self, key: str) -> bool:
        """Counts a request for `key`; False when the key is over its limit."""
        now = self._clock()
        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return True
        if window.count >= self.max_requests:
            return False
        window.count += 1
        return True

    def retry_after(self, key: str) -> int:
        """Whole seconds until `key` may send again (0 when it already may)."""
        window = self._windows.get(key)
        if window is None or window.count < self.max_requests:
            return 0
        return max(0, math.ceil(window.reset_at - self._clock()))

    def remaining(self, key: str) -> int:
        window = self._windows.get(key)
        if window is None or self._clock() > window.reset_at:
            return self.max_requests
        return max(0, self.max_requests - window.count)

    def cleanup(self) -> int:
        now = self._clock()
        stale = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)

    def start(self) -> None:
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.window_seconds)
            removed = self.cleanup()
            if removed:
                log.debug(f"Rate limiter dropped {removed} expired windows.")

    def stop(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None
