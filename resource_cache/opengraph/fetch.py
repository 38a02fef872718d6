"""
Origin fetch for OpenGraph metadata with retry and circuit-breaker bookkeeping
"""

import logging
import time
from typing import Callable, Optional

from ..config import Settings, settings as default_settings
from ..errors import CircuitOpen, HtmlTooLarge
from ..http_client import HttpFetcher
from ..retry import RetryPolicy
from ..schemas import FallbackImageData, ResourceResult, ResultSource
from ..session import DomainSessionTracker
from ..utils import get_hostname
from .parser import build_metadata, extract_opengraph_tags, select_best_image

logger = logging.getLogger(__name__)


class OpenGraphFetcher:
    def __init__(self,
                 http: HttpFetcher,
                 tracker: DomainSessionTracker,
                 config: Optional[Settings] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 clock: Callable[[], float] = time.time):
        self.http = http
        self.tracker = tracker
        self.settings = config or default_settings
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.og_max_attempts,
            base_delay=self.settings.og_backoff_base_sec,
            max_delay=self.settings.og_backoff_max_sec,
        )
        self._clock = clock

    async def fetch_with_retry(self, url: str,
                               fallback_hint: Optional[FallbackImageData] = None) -> Optional[ResourceResult]:
        """Fetch and parse ``url``; None once retries are exhausted.

        Exhaustion counts as one failure against the domain's circuit breaker.
        """
        domain = get_hostname(url)
        if self.tracker.has_failed_too_many_times(domain):
            logger.warning(f"Skipping OpenGraph fetch for {url}: {CircuitOpen(domain)}")
            return None

        try:
            result = await self.retry_policy.run(lambda: self._fetch_once(url, fallback_hint),
                                                 description=f"OpenGraph fetch {url}")
        except Exception as e:
            logger.warning(f"OpenGraph fetch failed for {url}: {e}")
            self.tracker.mark_failed(domain)
            return None

        self.tracker.clear(domain)
        return result

    async def _fetch_once(self, url: str, fallback_hint: Optional[FallbackImageData]) -> ResourceResult:
        logger.info(f"Fetching OpenGraph data from {url}")
        response = await self.http.fetch(
            url,
            kind="html",
            limiter="opengraph",
            timeout=self.settings.og_fetch_timeout_sec,
            max_bytes=self.settings.og_max_html_bytes,
            allow_truncated=True,
        )

        if response.too_large:
            logger.warning(f"HTML for {url} exceeds {self.settings.og_max_html_bytes} bytes, not parsing")
            return self._degraded_result(url, response.final_url)

        tags = extract_opengraph_tags(response.text, response.final_url)
        return ResourceResult(
            url=url,
            image_url=select_best_image(tags, response.final_url, fallback_hint, self.settings.asset_base_path),
            banner_image_url=tags.get("banner_image"),
            metadata=build_metadata(tags),
            timestamp=self._clock(),
            source=ResultSource.EXTERNAL,
            actual_url=response.final_url if response.final_url != url else None,
        )

    def _degraded_result(self, url: str, final_url: str) -> ResourceResult:
        hostname = get_hostname(final_url) or get_hostname(url)
        return ResourceResult(
            url=url,
            metadata={"title": hostname, "site": hostname, "url": url},
            timestamp=self._clock(),
            source=ResultSource.EXTERNAL,
            error=str(HtmlTooLarge(url, self.settings.og_max_html_bytes)),
            actual_url=final_url if final_url != url else None,
        )
