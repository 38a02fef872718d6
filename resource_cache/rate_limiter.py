import asyncio
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Tuple


class RateLimiter:
    """Sliding-window limiter: at most ``max_requests`` per ``window`` seconds"""

    def __init__(self, max_requests: int, window: float,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.max_requests = max(1, max_requests)
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._calls: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window:
            self._calls.popleft()

    def try_acquire(self) -> bool:
        now = self._clock()
        self._prune(now)
        if len(self._calls) < self.max_requests:
            self._calls.append(now)
            return True
        return False

    async def acquire(self) -> None:
        async with self._lock:
            while not self.try_acquire():
                wait = self.window - (self._clock() - self._calls[0])
                await self._sleep(max(wait, 0.001))


class RateLimiterPool:
    """One limiter per fetch type (opengraph, logo, image)"""

    def __init__(self, limits: Dict[str, Tuple[int, float]],
                 clock: Callable[[], float] = time.monotonic):
        self._limits = limits
        self._clock = clock
        self._limiters: Dict[str, RateLimiter] = {}

    def get(self, name: str) -> RateLimiter:
        limiter = self._limiters.get(name)
        if limiter is None:
            max_requests, window = self._limits.get(name, (10, 1.0))
            limiter = RateLimiter(max_requests, window, clock=self._clock)
            self._limiters[name] = limiter
        return limiter
