import asyncio
from typing import Awaitable, Callable, Dict, Generic, TypeVar

T = TypeVar("T")


class RequestDeduplicator(Generic[T]):
    """At most one in-flight call per key; concurrent callers share its outcome"""

    def __init__(self):
        self._in_flight: Dict[str, "asyncio.Task[T]"] = {}

    async def dedupe(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._release(key, done))
        # Shielded so one cancelled waiter does not cancel the shared fetch
        return await asyncio.shield(task)

    def _release(self, key: str, task: "asyncio.Task[T]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception retrieved; waiters already re-raise it
            task.exception()

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)
