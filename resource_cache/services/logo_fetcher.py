"""
Logo lookups against public favicon/logo providers, with an HTML favicon
scrape as the last resort.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..config import Settings, settings as default_settings
from ..errors import BufferTooSmall, GenericPlaceholderRejected, ResourceError
from ..http_client import HttpFetcher
from ..images import ImageProcessor
from ..models import ExternalLogo
from ..retry import RetryPolicy
from ..rules import ImageRules
from ..schemas import LogoSource
from ..session import DomainSessionTracker
from ..utils import get_domain_variants

logger = logging.getLogger(__name__)

FAVICON_LINK_RELS = ("apple-touch-icon", "icon", "shortcut icon")


@dataclass(frozen=True)
class LogoProvider:
    source: LogoSource
    template: str
    label: str

    def url_for(self, domain: str) -> str:
        return self.template.format(domain=domain)


GOOGLE_HD = LogoProvider(LogoSource.GOOGLE, "https://www.google.com/s2/favicons?domain={domain}&sz=256", "google-hd")
GOOGLE_MD = LogoProvider(LogoSource.GOOGLE, "https://www.google.com/s2/favicons?domain={domain}&sz=128", "google-md")
CLEARBIT_HD = LogoProvider(LogoSource.CLEARBIT, "https://logo.clearbit.com/{domain}?size=256", "clearbit-hd")
CLEARBIT_MD = LogoProvider(LogoSource.CLEARBIT, "https://logo.clearbit.com/{domain}?size=128", "clearbit-md")
DUCKDUCKGO = LogoProvider(LogoSource.DUCKDUCKGO, "https://icons.duckduckgo.com/ip3/{domain}.ico", "duckduckgo")


def default_providers(enable_clearbit: bool = True) -> List[LogoProvider]:
    """HD endpoints, then medium resolution, then the last-resort provider"""
    if enable_clearbit:
        return [GOOGLE_HD, CLEARBIT_HD, GOOGLE_MD, CLEARBIT_MD, DUCKDUCKGO]
    return [GOOGLE_HD, GOOGLE_MD, DUCKDUCKGO]


class LogoFetcher:
    def __init__(self,
                 http: HttpFetcher,
                 processor: ImageProcessor,
                 tracker: DomainSessionTracker,
                 rules: ImageRules,
                 config: Optional[Settings] = None,
                 providers: Optional[List[LogoProvider]] = None,
                 retry_policy: Optional[RetryPolicy] = None):
        self.http = http
        self.processor = processor
        self.tracker = tracker
        self.rules = rules
        self.settings = config or default_settings
        self.providers = providers if providers is not None else default_providers(self.settings.logo_enable_clearbit)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.logo_max_attempts,
            base_delay=self.settings.logo_backoff_base_sec,
            max_delay=self.settings.logo_backoff_max_sec,
        )

    async def fetch_external_logo(self, domain: str) -> Optional[ExternalLogo]:
        """First validated logo across domain variants and providers.

        Exhausting every source counts as one failure for the domain.
        """
        if self.tracker.has_failed_too_many_times(domain):
            logger.info(f"Circuit open for {domain}, skipping logo providers")
            return None

        for variant in get_domain_variants(domain, self.rules.domain_aliases):
            for provider in self.providers:
                logo = await self._try_source(provider.url_for(variant), provider.source)
                if logo:
                    logger.info(f"Found logo for {domain} via {provider.label} ({variant})")
                    self.tracker.clear(domain)
                    return logo

        logo = await self._fetch_site_favicon(domain)
        if logo:
            logger.info(f"Found logo for {domain} via site favicon")
            self.tracker.clear(domain)
            return logo

        logger.warning(f"No logo found for {domain}")
        self.tracker.mark_failed(domain)
        return None

    async def _try_source(self, url: str, source: LogoSource) -> Optional[ExternalLogo]:
        if self.processor.is_placeholder_url(url):
            return None
        try:
            response = await self.retry_policy.run(
                lambda: self.http.fetch(
                    url,
                    kind="image",
                    limiter="logo",
                    timeout=self.settings.logo_fetch_timeout_sec,
                    max_bytes=self.settings.image_max_bytes,
                ),
                description=f"logo fetch {url}",
            )
            if len(response.body) < self.settings.image_min_bytes:
                raise BufferTooSmall(url, len(response.body))
            if self.processor.is_placeholder_url(response.final_url):
                raise GenericPlaceholderRejected(response.final_url)
            if not self.processor.validate(response.body, url):
                logger.debug(f"Logo from {url} failed validation")
                return None
        except ResourceError as e:
            logger.debug(f"Logo source {url} unusable: {e}")
            return None

        processed = self.processor.process(response.body)
        return ExternalLogo(
            buffer=processed.buffer,
            source=source,
            content_type=processed.content_type,
            url=url,
            is_svg=processed.is_svg,
        )

    async def _fetch_site_favicon(self, domain: str) -> Optional[ExternalLogo]:
        if "." not in domain:
            return None
        page_url = f"https://{domain}/"
        candidates = []
        try:
            response = await self.http.fetch(
                page_url,
                kind="html",
                limiter="logo",
                timeout=self.settings.logo_fetch_timeout_sec,
                max_bytes=self.settings.og_max_html_bytes,
                allow_truncated=True,
            )
            candidates.extend(extract_favicon_links(response.text, response.final_url))
        except ResourceError as e:
            logger.debug(f"Could not load {page_url} for favicon links: {e}")

        candidates.append(urljoin(page_url, "/favicon.ico"))
        for candidate in dict.fromkeys(candidates):
            logo = await self._try_source(candidate, LogoSource.UNKNOWN)
            if logo:
                return logo
        return None


def extract_favicon_links(html: str, base_url: str) -> List[str]:
    soup = BeautifulSoup(html, "html.parser")
    links = []
    for rel in FAVICON_LINK_RELS:
        for link in soup.find_all("link", href=True):
            link_rel = " ".join(link.get("rel") or []).lower()
            if link_rel == rel:
                links.append(urljoin(base_url, link["href"]))
    return links
