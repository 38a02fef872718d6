"""
OpenGraph resolution across the three tiers: process memory, durable store
and the origin itself.

``resolve`` never raises; every failure ends in a result with
``source=fallback`` and an ``error`` string.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, List, Optional

from pydantic import ValidationError

from ..config import Settings, settings as default_settings
from ..dedup import RequestDeduplicator
from ..errors import CircuitOpen, InvalidUrl, StorageError
from ..keys import OPENGRAPH_IMAGES_DIR, metadata_key
from ..memory_cache import MemoryCache
from ..models import CacheEntry
from ..opengraph.fallback import create_fallback_result
from ..opengraph.fetch import OpenGraphFetcher
from ..rules import ImageRules
from ..schemas import FallbackImageData, ResourceResult, ResultSource
from ..session import DomainSessionTracker
from ..storage import ObjectStore
from ..tasks import BackgroundTasks
from ..utils import get_hostname, hash_url, is_remote_url, normalize_url
from .image_persistence import ImagePersistenceService

logger = logging.getLogger(__name__)

IMAGE_FIELDS = ("image_url", "banner_image_url")


def _as_cached(result: ResourceResult) -> ResourceResult:
    if result.source == ResultSource.FALLBACK:
        return result
    return result.with_source(ResultSource.CACHE)


class OpenGraphService:
    def __init__(self,
                 store: ObjectStore,
                 fetcher: OpenGraphFetcher,
                 images: ImagePersistenceService,
                 tracker: DomainSessionTracker,
                 tasks: BackgroundTasks,
                 rules: ImageRules,
                 config: Optional[Settings] = None,
                 memory: Optional[MemoryCache] = None,
                 deduplicator: Optional[RequestDeduplicator] = None,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.fetcher = fetcher
        self.images = images
        self.tracker = tracker
        self.tasks = tasks
        self.rules = rules
        self.settings = config or default_settings
        self.memory = memory or MemoryCache(
            success_ttl=self.settings.og_cache_success_sec,
            failure_ttl=self.settings.og_cache_failure_sec,
            retention=self.settings.memory_cache_retention_sec,
            max_entries=self.settings.memory_cache_max_entries,
            clock=clock,
        )
        self.deduplicator = deduplicator or RequestDeduplicator()
        self._clock = clock

    def _fallback(self, url: str, error: str,
                  fallback_hint: Optional[FallbackImageData] = None) -> ResourceResult:
        result = create_fallback_result(url, error, self.settings, self.rules,
                                        fallback_hint=fallback_hint, timestamp=self._clock())
        if fallback_hint and is_remote_url(fallback_hint.image_url) and result.image_url == fallback_hint.image_url:
            self.images.schedule(fallback_hint.image_url, OPENGRAPH_IMAGES_DIR, page_url=url)
        return result

    async def resolve(self, url: str,
                      skip_origin: bool = False,
                      idempotency_key: Optional[str] = None,
                      fallback_hint: Any = None) -> ResourceResult:
        hint = FallbackImageData.parse(fallback_hint)
        try:
            normalized = normalize_url(url)
        except InvalidUrl as e:
            logger.warning(f"Rejected OpenGraph request: {e}")
            return self._fallback(url or "", "invalid url", hint)

        entry = self.memory.get(normalized)
        if entry is not None and self.memory.is_fresh(entry):
            logger.debug(f"OpenGraph memory cache hit for {normalized}")
            if entry.is_failure:
                return entry.value
            return await self._upgrade_images(normalized, entry, idempotency_key)

        if entry is not None and not entry.is_failure and not skip_origin:
            logger.debug(f"Serving stale OpenGraph data for {normalized}, refreshing in background")
            self.tasks.spawn(self.refresh(normalized, idempotency_key, hint),
                             name=f"refresh-opengraph:{normalized}")
            return _as_cached(entry.value)

        domain = get_hostname(normalized)
        if self.tracker.has_failed_too_many_times(domain):
            logger.info(f"Circuit open for {domain}, returning fallback for {normalized}")
            return self._fallback(normalized, str(CircuitOpen(domain)), hint)

        stored = await self._read_stored(normalized)
        if stored is not None:
            logger.debug(f"OpenGraph durable store hit for {normalized}")
            stored_entry = self.memory.set(normalized, stored)
            upgraded = await self._upgrade_images(normalized, stored_entry, idempotency_key)
            return upgraded.with_source(ResultSource.CACHE)

        if skip_origin or self.settings.og_skip_external_fetch:
            if entry is not None:
                return _as_cached(entry.value)
            return self._fallback(normalized, "Skipped external fetch", hint)

        return await self.refresh(normalized, idempotency_key, hint)

    async def refresh(self, url: str,
                      idempotency_key: Optional[str] = None,
                      fallback_hint: Optional[FallbackImageData] = None) -> ResourceResult:
        """Fetch from the origin, at most once concurrently per URL"""
        try:
            normalized = normalize_url(url)
        except InvalidUrl:
            return self._fallback(url, "invalid url", fallback_hint)
        return await self.deduplicator.dedupe(
            hash_url(normalized),
            lambda: self._refresh(normalized, idempotency_key, fallback_hint),
        )

    async def _refresh(self, url: str,
                       idempotency_key: Optional[str],
                       fallback_hint: Optional[FallbackImageData]) -> ResourceResult:
        previous = self.memory.get(url)
        try:
            result = await self.fetcher.fetch_with_retry(url, fallback_hint)
        except Exception as e:
            logger.error(f"Unexpected error refreshing OpenGraph data for {url}: {e}")
            self.tracker.mark_failed(get_hostname(url))
            result = None

        if result is None:
            return self._remember_failure(url, previous, fallback_hint)

        try:
            result = await self._persist_images(url, result, idempotency_key)
        except Exception as e:
            logger.error(f"Unexpected error persisting images for {url}, keeping origin URLs: {e}")
        self.memory.set(url, result)
        try:
            await self.store.write_json(metadata_key(url), result.model_dump(mode="json"))
        except StorageError as e:
            logger.warning(f"Failed to persist OpenGraph metadata for {url}: {e}")
        return result

    def _remember_failure(self, url: str,
                          previous: Optional[CacheEntry],
                          fallback_hint: Optional[FallbackImageData]) -> ResourceResult:
        if previous is not None and previous.value.source != ResultSource.FALLBACK:
            result = _as_cached(previous.value)
        else:
            result = self._fallback(url, "External fetch failed", fallback_hint)
        self.memory.set(url, result, is_failure=True)
        return result

    async def _persist_images(self, url: str, result: ResourceResult,
                              idempotency_key: Optional[str]) -> ResourceResult:
        updates = {}
        for field in IMAGE_FIELDS:
            image_url = getattr(result, field)
            if not is_remote_url(image_url):
                continue
            key_token = idempotency_key if field == "image_url" else (
                f"{idempotency_key}-banner" if idempotency_key else None)
            key = await self.images.persist(image_url, OPENGRAPH_IMAGES_DIR, key_token, url)
            if key:
                updates[field] = key
        return result.model_copy(update=updates) if updates else result

    async def _upgrade_images(self, url: str, entry: CacheEntry,
                              idempotency_key: Optional[str]) -> ResourceResult:
        """Swap origin image URLs for store keys that already exist; queue the rest"""
        result: ResourceResult = entry.value
        updates = {}
        for field in IMAGE_FIELDS:
            image_url = getattr(result, field)
            if not is_remote_url(image_url):
                continue
            key_token = idempotency_key if field == "image_url" else (
                f"{idempotency_key}-banner" if idempotency_key else None)
            key = await self.images.find(image_url, OPENGRAPH_IMAGES_DIR, key_token, url)
            if key:
                updates[field] = key
            else:
                self.images.schedule(image_url, OPENGRAPH_IMAGES_DIR, key_token, url)
        if not updates:
            return result
        upgraded = result.model_copy(update=updates)
        self.memory.update(url, upgraded)
        return upgraded

    async def _read_stored(self, url: str) -> Optional[ResourceResult]:
        key = metadata_key(url)
        try:
            payload = await self.store.read_json(key)
        except StorageError as e:
            logger.warning(f"Failed to read stored OpenGraph metadata {key}: {e}")
            return None
        if payload is None:
            return None
        try:
            return ResourceResult.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid stored OpenGraph metadata {key}: {e}")
            return None

    async def refresh_batch(self, urls: Iterable[str], concurrency: int = 5) -> List[ResourceResult]:
        """Operator refresh: clears circuit-breaker state, then refetches each URL"""
        self.tracker.reset()
        semaphore = asyncio.Semaphore(concurrency)

        async def _one(url: str) -> ResourceResult:
            async with semaphore:
                return await self.refresh(url)

        return await asyncio.gather(*[_one(url) for url in urls])

    def invalidate(self, url: str) -> bool:
        try:
            return self.memory.delete(normalize_url(url))
        except InvalidUrl:
            return False

    def clear_memory(self) -> None:
        self.memory.clear()

    async def serve_image(self, key: str):
        return await self.images.serve(key)
