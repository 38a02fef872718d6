"""
Wiring for a process-wide set of services.

The OpenGraph and logo services share one HTTP client, store, circuit
breaker and background-task runner.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .config import Settings, settings as default_settings
from .http_client import HttpFetcher
from .images import ImageProcessor
from .opengraph.fetch import OpenGraphFetcher
from .rules import ImageRules, load_image_rules
from .services import ImagePersistenceService, LogoFetcher, LogoService, OpenGraphService
from .session import DomainSessionTracker
from .storage import FileSystemObjectStore, ObjectStore
from .tasks import BackgroundTasks

logger = logging.getLogger(__name__)


@dataclass
class ResourceServices:
    opengraph: OpenGraphService
    logos: LogoService
    images: ImagePersistenceService
    store: ObjectStore
    http: HttpFetcher
    tracker: DomainSessionTracker
    tasks: BackgroundTasks
    rules: ImageRules

    async def close(self) -> None:
        await self.tasks.drain()
        await self.http.close()


def build_services(config: Optional[Settings] = None,
                   store: Optional[ObjectStore] = None,
                   client: Optional[httpx.AsyncClient] = None,
                   rules: Optional[ImageRules] = None,
                   clock: Optional[Callable[[], float]] = None) -> ResourceServices:
    config = config or default_settings
    rules = rules or load_image_rules(config.image_rules_path)
    store = store or FileSystemObjectStore(config.storage_root, read_only=config.storage_read_only)

    http = HttpFetcher(config, client=client)
    tracker = DomainSessionTracker(
        threshold=config.domain_failure_threshold,
        session_window=config.domain_session_window_sec,
        max_domains=config.max_tracked_domains,
        clock=clock or time.monotonic,
    )
    tasks = BackgroundTasks()
    processor = ImageProcessor(rules, min_dimension=config.image_min_dimension, min_area=config.image_min_area)
    images = ImagePersistenceService(store, http, processor, tasks, config)

    opengraph = OpenGraphService(
        store=store,
        fetcher=OpenGraphFetcher(http, tracker, config, clock=clock or time.time),
        images=images,
        tracker=tracker,
        tasks=tasks,
        rules=rules,
        config=config,
        clock=clock or time.time,
    )
    logos = LogoService(
        store=store,
        fetcher=LogoFetcher(http, processor, tracker, rules, config),
        tracker=tracker,
        tasks=tasks,
        config=config,
        clock=clock or time.time,
    )
    logger.info(f"Resource services ready (store={type(store).__name__}, read_only={store.read_only})")
    return ResourceServices(
        opengraph=opengraph,
        logos=logos,
        images=images,
        store=store,
        http=http,
        tracker=tracker,
        tasks=tasks,
        rules=rules,
    )
