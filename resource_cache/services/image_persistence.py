"""
Copies remote images into the durable store under deterministic keys
"""

import logging
from typing import Optional, Tuple

from ..config import Settings, settings as default_settings
from ..errors import BufferTooSmall, ResourceError, StorageError
from ..http_client import HttpFetcher
from ..images import ImageProcessor
from ..keys import find_image_key, get_storage_key
from ..retry import RetryPolicy
from ..storage import ObjectStore
from ..tasks import BackgroundTasks
from ..utils import hash_content, is_remote_url

logger = logging.getLogger(__name__)


class ImagePersistenceService:
    def __init__(self,
                 store: ObjectStore,
                 http: HttpFetcher,
                 processor: ImageProcessor,
                 tasks: BackgroundTasks,
                 config: Optional[Settings] = None,
                 retry_policy: Optional[RetryPolicy] = None):
        self.store = store
        self.http = http
        self.processor = processor
        self.tasks = tasks
        self.settings = config or default_settings
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.og_max_attempts,
            base_delay=self.settings.og_backoff_base_sec,
            max_delay=self.settings.og_backoff_max_sec,
        )

    async def find(self, image_url: str, directory: str,
                   idempotency_key: Optional[str] = None,
                   page_url: Optional[str] = None) -> Optional[str]:
        return await find_image_key(self.store, image_url, directory, page_url, idempotency_key)

    async def persist(self, image_url: str, directory: str,
                      idempotency_key: Optional[str] = None,
                      page_url: Optional[str] = None) -> Optional[str]:
        """Store the image and return its key, or None if it could not be stored"""
        if not is_remote_url(image_url):
            return None

        existing = await self.find(image_url, directory, idempotency_key, page_url)
        if existing:
            logger.debug(f"Image already persisted at {existing}")
            return existing

        if self.store.read_only:
            return None

        try:
            response = await self.retry_policy.run(
                lambda: self.http.fetch(
                    image_url,
                    kind="image",
                    limiter="image",
                    timeout=self.settings.image_fetch_timeout_sec,
                    max_bytes=self.settings.image_max_bytes,
                ),
                description=f"image fetch {image_url}",
            )
            if len(response.body) < self.settings.image_min_bytes:
                raise BufferTooSmall(image_url, len(response.body))

            processed = self.processor.process(response.body)
            key = get_storage_key(
                image_url,
                directory,
                page_url=page_url,
                idempotency_key=idempotency_key,
                fallback_hash=hash_content(processed.buffer),
                extension=processed.extension,
            )
            await self.store.write(key, processed.buffer, processed.content_type)
        except (ResourceError, StorageError) as e:
            logger.warning(f"Failed to persist image {image_url}: {e}")
            return None

        logger.info(f"Persisted image {image_url} -> {key}")
        return key

    def schedule(self, image_url: str, directory: str,
                 idempotency_key: Optional[str] = None,
                 page_url: Optional[str] = None) -> None:
        self.tasks.spawn(
            self.persist(image_url, directory, idempotency_key, page_url),
            name=f"persist-image:{image_url}",
        )

    async def serve(self, key: str) -> Optional[Tuple[bytes, str]]:
        """Bytes and content type for a stored image key"""
        try:
            stored = await self.store.read_object(key)
        except StorageError as e:
            logger.warning(f"Failed to read stored image {key}: {e}")
            return None
        if stored is None:
            return None
        return stored.data, stored.content_type
