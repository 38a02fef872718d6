"""
URL, domain and hashing helpers shared by the OpenGraph and logo paths
"""

import hashlib
import re
from enum import Enum
from typing import Dict, List, Optional
from urllib.parse import urlparse, urlunparse

from .errors import InvalidUrl

IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "webp", "svg", "avif")

# Second-level labels that are part of a public suffix (example.co.uk)
_COMPOUND_SUFFIX_LABELS = {"co", "com", "org", "net", "ac", "gov", "edu"}


class Platform(str, Enum):
    GITHUB = "GitHub"
    X = "X"
    LINKEDIN = "LinkedIn"
    BLUESKY = "Bluesky"
    DISCORD = "Discord"
    WEBSITE = "Website"

    @property
    def is_social(self) -> bool:
        return self is not Platform.WEBSITE


_PLATFORM_HOSTS = {
    Platform.GITHUB: ("github.com",),
    Platform.X: ("x.com", "twitter.com"),
    Platform.LINKEDIN: ("linkedin.com",),
    Platform.BLUESKY: ("bsky.app",),
    Platform.DISCORD: ("discord.com", "discord.gg"),
}


def validate_url(url: str) -> str:
    """Return the stripped URL or raise InvalidUrl for anything but http(s)"""
    if not url or not isinstance(url, str):
        raise InvalidUrl("invalid url: empty", url)
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https"):
        raise InvalidUrl(f"invalid url: unsupported protocol in {url}", url)
    if not parsed.hostname:
        raise InvalidUrl(f"invalid url: missing host in {url}", url)
    if parsed.username or parsed.password:
        raise InvalidUrl(f"unsafe url: embedded credentials in {url}", url)
    return url


def normalize_url(url: str) -> str:
    """Validate and strip fragment and query so cache keys stay stable"""
    parsed = urlparse(validate_url(url))
    netloc = parsed.netloc.lower()
    path = parsed.path or "/"
    return urlunparse((parsed.scheme.lower(), netloc, path, "", "", ""))


def hash_url(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def hash_content(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def get_hostname(url: str) -> str:
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return hostname[4:] if hostname.startswith("www.") else hostname


def classify_url(url: str) -> Platform:
    hostname = get_hostname(url).lower()
    for platform, hosts in _PLATFORM_HOSTS.items():
        for host in hosts:
            if hostname == host or hostname.endswith("." + host):
                return platform
    return Platform.WEBSITE


def normalize_domain(value: str) -> str:
    """Turn a URL, bare domain or company name into a lookup domain.

    ``https://www.Example.com/about`` and ``example.com`` both give
    ``example.com``; a company name such as ``Acme Corp`` gives ``acmecorp``.
    """
    value = (value or "").strip()
    if not value:
        return ""
    looks_like_url = "://" in value or value.lower().startswith("www.") or "/" in value
    if looks_like_url:
        candidate = value if "://" in value else f"https://{value}"
        return get_hostname(candidate).lower()
    if "." in value and " " not in value:
        return value.lower().removeprefix("www.")
    return re.sub(r"\s+", "", value).lower()


def root_domain(domain: str) -> str:
    labels = domain.split(".")
    if len(labels) <= 2:
        return domain
    if len(labels[-1]) == 2 and labels[-2] in _COMPOUND_SUFFIX_LABELS:
        return ".".join(labels[-3:])
    return ".".join(labels[-2:])


def get_domain_variants(domain: str, aliases: Optional[Dict[str, str]] = None) -> List[str]:
    """Apex, www form, registrable root and any configured alias, in that order"""
    apex = domain.lower().removeprefix("www.")
    variants = [apex]
    if "." in apex:
        variants.append(f"www.{apex}")
    root = root_domain(apex)
    if root != apex:
        variants.append(root)
    if aliases:
        for name in (apex, root):
            alias = aliases.get(name)
            if alias:
                variants.append(alias)

    seen = set()
    ordered = []
    for variant in variants:
        if variant and variant not in seen:
            seen.add(variant)
            ordered.append(variant)
    return ordered


def domain_slug(domain: str) -> str:
    return re.sub(r"[^a-z0-9\-]", "-", domain.lower().removeprefix("www.").replace(".", "-"))


def image_extension(url: str) -> str:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return "png"
    match = re.search(r"\.([a-z0-9]+)$", path)
    if match and match.group(1) in IMAGE_EXTENSIONS:
        return match.group(1)
    return "png"


def is_remote_url(value: Optional[str]) -> bool:
    return bool(value) and value.startswith(("http://", "https://"))


def is_valid_image_url(value: Optional[str]) -> bool:
    if not value or value.startswith("data:"):
        return False
    if value.startswith("/"):
        return not value.startswith("//")
    try:
        validate_url(value)
    except InvalidUrl:
        return False
    return True


def construct_asset_url(asset_id: str, base_path: str = "/api/assets") -> str:
    sanitized = re.sub(r"[^a-zA-Z0-9\-_]", "", asset_id or "")
    if not sanitized:
        raise ValueError(f"Invalid asset id: {asset_id!r}")
    return f"{base_path.rstrip('/')}/{sanitized}"
