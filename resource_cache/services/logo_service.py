"""
Logo resolution across memory, durable store and external providers
"""

import logging
import time
from typing import Callable, Optional, Tuple

from ..config import Settings, settings as default_settings
from ..dedup import RequestDeduplicator
from ..errors import CircuitOpen, StorageError
from ..keys import LOGOS_DIR, STORED_IMAGE_EXTENSIONS, logo_key, logo_source_from_key
from ..memory_cache import MemoryCache
from ..models import LogoResult
from ..schemas import LogoSource
from ..session import DomainSessionTracker
from ..storage import ObjectStore
from ..tasks import BackgroundTasks
from ..utils import domain_slug, hash_content, normalize_domain
from .logo_fetcher import LogoFetcher

logger = logging.getLogger(__name__)

SVG_CONTENT_TYPE = "image/svg+xml"


class LogoService:
    def __init__(self,
                 store: ObjectStore,
                 fetcher: LogoFetcher,
                 tracker: DomainSessionTracker,
                 tasks: BackgroundTasks,
                 config: Optional[Settings] = None,
                 memory: Optional[MemoryCache] = None,
                 deduplicator: Optional[RequestDeduplicator] = None,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.fetcher = fetcher
        self.tracker = tracker
        self.tasks = tasks
        self.settings = config or default_settings
        self.memory = memory or MemoryCache(
            success_ttl=self.settings.logo_cache_success_sec,
            failure_ttl=self.settings.logo_cache_failure_sec,
            retention=self.settings.memory_cache_retention_sec,
            max_entries=self.settings.memory_cache_max_entries,
            clock=clock,
        )
        self.deduplicator = deduplicator or RequestDeduplicator()

    async def fetch_logo(self, domain_or_company: str, skip_origin: bool = False) -> LogoResult:
        domain = normalize_domain(domain_or_company)
        if not domain:
            return LogoResult(domain=domain_or_company or "", error="invalid domain")

        entry = self.memory.get(domain)
        if entry is not None and self.memory.is_fresh(entry):
            logger.debug(f"Logo memory cache hit for {domain}")
            return entry.value

        if entry is not None and not entry.is_failure and not skip_origin:
            logger.debug(f"Serving stale logo for {domain}, refreshing in background")
            self.tasks.spawn(self.refresh(domain), name=f"refresh-logo:{domain}")
            return entry.value

        stored = await self.find_in_store(domain)
        if stored is not None:
            self.memory.set(domain, stored)
            return stored

        if skip_origin:
            return LogoResult(domain=domain, error="Skipped external fetch")

        if self.tracker.has_failed_too_many_times(domain):
            return LogoResult(domain=domain, error=str(CircuitOpen(domain)))

        return await self.refresh(domain)

    async def refresh(self, domain: str) -> LogoResult:
        return await self.deduplicator.dedupe(domain, lambda: self._refresh(domain))

    async def _refresh(self, domain: str) -> LogoResult:
        logo = await self.fetcher.fetch_external_logo(domain)
        if logo is None:
            result = LogoResult(domain=domain, error="No valid logo found")
            self.memory.set(domain, result, is_failure=True)
            return result

        extension = "svg" if logo.is_svg else "png"
        key = logo_key(domain, logo.source, extension)
        await self._write_if_changed(key, logo.buffer, logo.content_type)

        result = LogoResult(
            domain=domain,
            buffer=logo.buffer,
            source=logo.source,
            content_type=logo.content_type,
            storage_key=key,
            url=logo.url,
        )
        self.memory.set(domain, result)
        return result

    async def _write_if_changed(self, key: str, data: bytes, content_type: str) -> None:
        try:
            existing = await self.store.read(key)
            if existing is not None and hash_content(existing) == hash_content(data):
                logger.debug(f"Logo at {key} unchanged, skipping upload")
                return
            await self.store.write(key, data, content_type)
            logger.info(f"Stored logo {key}")
        except StorageError as e:
            logger.warning(f"Failed to store logo {key}: {e}")

    async def find_in_store(self, domain: str) -> Optional[LogoResult]:
        try:
            for source in LogoSource:
                for extension in STORED_IMAGE_EXTENSIONS:
                    key = logo_key(domain, source, extension)
                    stored = await self.store.read_object(key)
                    if stored is not None:
                        return self._stored_result(domain, key, stored.data, source, extension)

            for key in await self.store.list(f"{LOGOS_DIR}/{domain_slug(domain)}_"):
                source = logo_source_from_key(key)
                if source is None:
                    continue
                data = await self.store.read(key)
                if data is not None:
                    return self._stored_result(domain, key, data, source, key.rsplit(".", 1)[-1])
        except StorageError as e:
            logger.warning(f"Failed to look up stored logo for {domain}: {e}")
        return None

    def _stored_result(self, domain: str, key: str, data: bytes,
                       source: LogoSource, extension: str) -> LogoResult:
        return LogoResult(
            domain=domain,
            buffer=data,
            source=source,
            content_type=SVG_CONTENT_TYPE if extension == "svg" else "image/png",
            storage_key=key,
        )

    async def serve_logo(self, domain_or_company: str) -> Optional[Tuple[bytes, str]]:
        """Stored logo bytes and content type; never reaches out to providers"""
        domain = normalize_domain(domain_or_company)
        if not domain:
            return None
        result = await self.find_in_store(domain)
        if result is None or result.buffer is None:
            return None
        return result.buffer, result.content_type

    def invalidate(self, domain_or_company: str) -> bool:
        return self.memory.delete(normalize_domain(domain_or_company))
