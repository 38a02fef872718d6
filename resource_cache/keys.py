"""
Deterministic storage keys for persisted images and metadata
"""

import logging
import re
from typing import Iterable, List, Optional

from .errors import StorageReadError
from .schemas import LogoSource
from .storage import ObjectStore
from .utils import domain_slug, get_hostname, hash_url, image_extension

logger = logging.getLogger(__name__)

OPENGRAPH_METADATA_DIR = "opengraph/metadata"
OPENGRAPH_IMAGES_DIR = "images/opengraph"
LOGOS_DIR = "images/logos"

STORED_IMAGE_EXTENSIONS = ("png", "svg")


def sanitize_token(token: str) -> str:
    return re.sub(r"[^a-zA-Z0-9\-_]", "", token or "")


def storage_extension(resource_url: str) -> str:
    """Extension used for keys; stored images are always PNG or SVG"""
    return "svg" if image_extension(resource_url) == "svg" else "png"


def image_key_base(resource_url: str,
                   page_url: Optional[str] = None,
                   idempotency_key: Optional[str] = None,
                   fallback_hash: Optional[str] = None) -> str:
    token = sanitize_token(idempotency_key) if idempotency_key else ""
    if token and page_url:
        page_domain = domain_slug(get_hostname(page_url))
        if page_domain:
            return f"{page_domain}-{token}"
    if token:
        return token
    if fallback_hash:
        return fallback_hash
    return hash_url(resource_url)


def get_storage_key(resource_url: str,
                    directory: str,
                    page_url: Optional[str] = None,
                    idempotency_key: Optional[str] = None,
                    fallback_hash: Optional[str] = None,
                    extension: Optional[str] = None) -> str:
    """Key for an image.

    Preference: idempotency token plus page domain, then the content hash of
    the fetched bytes, then a hash of the resource URL.
    """
    base = image_key_base(resource_url, page_url, idempotency_key, fallback_hash)
    ext = extension or storage_extension(resource_url)
    return f"{directory.rstrip('/')}/{base}.{ext}"


def metadata_key(normalized_url: str) -> str:
    return f"{OPENGRAPH_METADATA_DIR}/{hash_url(normalized_url)}.json"


def logo_key(domain: str, source: LogoSource, extension: str = "png") -> str:
    return f"{LOGOS_DIR}/{domain_slug(domain)}_{source.value}.{extension}"


def logo_source_from_key(key: str) -> Optional[LogoSource]:
    match = re.search(r"_([a-z]+)\.[a-z0-9]+$", key)
    if not match:
        return None
    try:
        return LogoSource(match.group(1))
    except ValueError:
        return None


def _candidate_keys(resource_url: str, directory: str, page_url: Optional[str],
                    idempotency_key: Optional[str]) -> Iterable[str]:
    preferred = storage_extension(resource_url)
    extensions: List[str] = [preferred] + [e for e in STORED_IMAGE_EXTENSIONS if e != preferred]
    for ext in extensions:
        yield get_storage_key(resource_url, directory, page_url, idempotency_key, extension=ext)


async def find_image_key(store: ObjectStore,
                         resource_url: str,
                         directory: str,
                         page_url: Optional[str] = None,
                         idempotency_key: Optional[str] = None) -> Optional[str]:
    """Locate an already persisted image.

    Tries the ideal key first, then lists the directory for a key carrying
    the idempotency token (the resource URL changed, the identity did not).
    """
    try:
        for key in _candidate_keys(resource_url, directory, page_url, idempotency_key):
            if await store.exists(key):
                return key

        token = sanitize_token(idempotency_key) if idempotency_key else ""
        if not token:
            return None

        for key in await store.list(f"{directory.rstrip('/')}/"):
            name = key.rsplit("/", 1)[-1]
            if token in name:
                return key
    except StorageReadError as e:
        logger.warning(f"Storage lookup failed for {resource_url}: {e}")
    return None
