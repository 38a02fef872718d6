"""
Outbound HTTP for origin fetches: shared httpx client, browser-like headers,
per-fetch-type rate limits and hard timeouts.
"""

import asyncio
import codecs
import logging
import random
from typing import Dict, Optional

import httpx

from .config import Settings, settings as default_settings
from .errors import ContentTooLarge, FetchConnectionError, FetchHttpError, FetchTimeout
from .models import FetchResponse
from .rate_limiter import RateLimiterPool

logger = logging.getLogger(__name__)

ACCEPT_HEADERS = {
    "html": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "image": "image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8",
}

SEC_FETCH_HEADERS = {
    "html": {"Sec-Fetch-Dest": "document", "Sec-Fetch-Mode": "navigate", "Sec-Fetch-Site": "cross-site"},
    "image": {"Sec-Fetch-Dest": "image", "Sec-Fetch-Mode": "no-cors", "Sec-Fetch-Site": "cross-site"},
}


def get_proxy_url(config: Settings) -> Optional[str]:
    if not config.proxy_enabled or not config.http_proxy:
        return None
    return config.http_proxy


def _charset(content_type: Optional[str]) -> Optional[str]:
    if not content_type or "charset=" not in content_type.lower():
        return None
    charset = content_type.lower().split("charset=", 1)[1].split(";")[0].strip().strip('"\'')
    try:
        codecs.lookup(charset)
    except LookupError:
        return None
    return charset


class HttpFetcher:
    def __init__(self,
                 config: Optional[Settings] = None,
                 client: Optional[httpx.AsyncClient] = None,
                 rate_limiters: Optional[RateLimiterPool] = None):
        self.settings = config or default_settings
        self.session = client
        self.rate_limiters = rate_limiters or RateLimiterPool({
            "opengraph": (self.settings.og_rate_limit_requests, self.settings.og_rate_limit_window_sec),
            "logo": (self.settings.logo_rate_limit_requests, self.settings.logo_rate_limit_window_sec),
            "image": (self.settings.image_rate_limit_requests, self.settings.image_rate_limit_window_sec),
        })

    async def get_session(self) -> httpx.AsyncClient:
        """Get or create HTTP session"""
        if not self.session:
            client_kwargs = {
                "timeout": httpx.Timeout(self.settings.og_fetch_timeout_sec),
                "follow_redirects": True,
                "limits": httpx.Limits(max_keepalive_connections=20, max_connections=50),
            }
            proxy_url = get_proxy_url(self.settings)
            if proxy_url:
                logger.info(f"Using proxy for origin fetches: {proxy_url}")
                client_kwargs["proxy"] = proxy_url
            self.session = httpx.AsyncClient(**client_kwargs)
        return self.session

    async def close(self):
        """Close HTTP session"""
        if self.session:
            await self.session.aclose()
            self.session = None

    def browser_headers(self, kind: str = "html") -> Dict[str, str]:
        headers = {
            "User-Agent": random.choice(self.settings.http_user_agents),
            "Accept": ACCEPT_HEADERS.get(kind, "*/*"),
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Referer": self.settings.http_referer,
            "Cache-Control": "no-cache",
            "Upgrade-Insecure-Requests": "1",
        }
        headers.update(SEC_FETCH_HEADERS.get(kind, {}))
        return headers

    async def fetch(self,
                    url: str,
                    kind: str = "html",
                    limiter: Optional[str] = None,
                    timeout: Optional[float] = None,
                    max_bytes: Optional[int] = None,
                    allow_truncated: bool = False) -> FetchResponse:
        """GET ``url`` and return the (possibly truncated) body.

        Non-2xx raises FetchHttpError. A body over ``max_bytes`` raises
        ContentTooLarge unless ``allow_truncated``, in which case the first
        ``max_bytes`` are returned with ``too_large`` set.
        """
        if limiter:
            await self.rate_limiters.get(limiter).acquire()

        timeout = timeout or self.settings.og_fetch_timeout_sec
        max_bytes = max_bytes or self.settings.image_max_bytes
        session = await self.get_session()

        async def _request() -> FetchResponse:
            async with session.stream("GET", url, headers=self.browser_headers(kind)) as response:
                if response.status_code >= 400:
                    raise FetchHttpError(url, response.status_code)

                content_type = response.headers.get("content-type")
                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > max_bytes and not allow_truncated:
                    raise ContentTooLarge(url, max_bytes)

                chunks = []
                size = 0
                too_large = False
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
                    if size > max_bytes:
                        if not allow_truncated:
                            raise ContentTooLarge(url, max_bytes)
                        chunks.append(chunk[:max_bytes - (size - len(chunk))])
                        too_large = True
                        break
                    chunks.append(chunk)

                return FetchResponse(
                    url=url,
                    final_url=str(response.url),
                    status_code=response.status_code,
                    body=b"".join(chunks),
                    content_type=content_type,
                    encoding=_charset(content_type),
                    too_large=too_large,
                )

        try:
            return await asyncio.wait_for(_request(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeout(url, timeout) from e
        except httpx.TimeoutException as e:
            raise FetchTimeout(url, timeout) from e
        except httpx.HTTPError as e:
            raise FetchConnectionError(f"Connection error fetching {url}: {e}", url) from e
