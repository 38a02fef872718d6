"""
Per-domain circuit breaker.

Process-local: every server instance keeps its own failure counts.
"""

import logging
import time
from typing import Callable, Dict, Optional

from .models import DomainFailureState

logger = logging.getLogger(__name__)


class DomainSessionTracker:
    def __init__(self,
                 threshold: int = 2,
                 session_window: float = 1800,
                 max_domains: int = 500,
                 clock: Callable[[], float] = time.monotonic):
        self.threshold = threshold
        self.session_window = session_window
        self.max_domains = max_domains
        self._clock = clock
        self._states: Dict[str, DomainFailureState] = {}

    def reset_if_expired(self) -> None:
        now = self._clock()
        expired = [domain for domain, state in self._states.items()
                   if now - state.session_start >= self.session_window]
        for domain in expired:
            del self._states[domain]
        if expired:
            logger.debug(f"Session window elapsed for {len(expired)} domain(s), counters cleared")

    def has_failed_too_many_times(self, domain: str) -> bool:
        self.reset_if_expired()
        state = self._states.get(domain)
        return state is not None and state.failure_count >= self.threshold

    def mark_failed(self, domain: str) -> None:
        self.reset_if_expired()
        state = self._states.get(domain)
        if state is None:
            if len(self._states) >= self.max_domains:
                logger.info(f"Tracked domain limit ({self.max_domains}) reached, resetting session")
                self.reset()
            state = DomainFailureState(domain=domain, session_start=self._clock())
            self._states[domain] = state
        state.failure_count += 1
        if state.failure_count == self.threshold:
            logger.warning(f"Circuit opened for {domain} after {state.failure_count} failures")

    def clear(self, domain: str) -> None:
        self._states.pop(domain, None)

    def reset(self) -> None:
        self._states.clear()

    def failure_count(self, domain: str) -> int:
        self.reset_if_expired()
        state = self._states.get(domain)
        return state.failure_count if state else 0

    def get_state(self, domain: str) -> Optional[DomainFailureState]:
        return self._states.get(domain)

    def __len__(self) -> int:
        return len(self._states)
