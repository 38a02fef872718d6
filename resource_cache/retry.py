"""
Retry policy shared by the OpenGraph and logo fetch paths
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import ResourceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

NON_RETRYABLE_MARKERS = ("400", "401", "403", "404", "invalid", "unsafe", "content too large")


def is_retryable_error(error: BaseException) -> bool:
    """Single retryable-vs-terminal decision for every origin fetch"""
    if isinstance(error, ResourceError):
        return bool(error.retryable)
    if isinstance(error, asyncio.TimeoutError):
        return True
    message = str(error).lower()
    return not any(marker in message for marker in NON_RETRYABLE_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    base_delay: float = 1.0
    max_delay: float = 5.0
    is_retryable: Callable[[BaseException], bool] = is_retryable_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False, repr=False)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based): base * 2^attempt, capped"""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "") -> T:
        last_error: Optional[BaseException] = None
        for attempt in range(max(1, self.max_attempts)):
            if attempt > 0:
                delay = self.backoff_delay(attempt - 1)
                logger.debug(f"Retrying {description} in {delay:.2f}s (attempt {attempt + 1}/{self.max_attempts})")
                await self.sleep(delay)
            try:
                return await operation()
            except Exception as e:
                last_error = e
                if not self.is_retryable(e):
                    logger.debug(f"Not retrying {description}: {e}")
                    break
                logger.debug(f"Attempt {attempt + 1} failed for {description}: {e}")
        raise last_error
