"""
Platform-specific profile/banner image extraction.

Extractors are registered per Platform; adding a platform means adding a
decorated function here, nothing else.
"""

import logging
import re
from typing import Callable, Dict, Iterable, Optional

from bs4 import BeautifulSoup

from ..models import PlatformImages
from ..utils import Platform

logger = logging.getLogger(__name__)

Extractor = Callable[[BeautifulSoup], PlatformImages]

EXTRACTORS: Dict[Platform, Extractor] = {}

BACKGROUND_IMAGE_RE = re.compile(r"background-image:\s*url\((['\"]?)(.*?)\1\)", re.IGNORECASE)


def register_extractor(*platforms: Platform):
    def decorator(func: Extractor) -> Extractor:
        for platform in platforms:
            EXTRACTORS[platform] = func
        return func
    return decorator


def extract_platform_images(platform: Platform, soup: BeautifulSoup) -> PlatformImages:
    extractor = EXTRACTORS.get(platform)
    if extractor is None:
        return PlatformImages()
    try:
        return extractor(soup)
    except Exception as e:
        logger.warning(f"{platform.value} image extraction failed: {e}")
        return PlatformImages()


def first_match(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[str]:
    """First non-empty ``src`` (img) or ``content`` (meta) among the selectors"""
    for selector in selectors:
        element = soup.select_one(selector)
        if element is None:
            continue
        value = element.get("content") if element.name == "meta" else element.get("src")
        if value and value.strip():
            return value.strip()
    return None


def meta_content(soup: BeautifulSoup, *names: str) -> Optional[str]:
    selectors = []
    for name in names:
        selectors.append(f'meta[property="{name}"]')
        selectors.append(f'meta[name="{name}"]')
    return first_match(soup, selectors)


@register_extractor(Platform.GITHUB)
def extract_github(soup: BeautifulSoup) -> PlatformImages:
    profile = first_match(soup, [
        "img.avatar-user",
        "img.avatar",
        'img[alt*="avatar"]',
        'a[itemprop="image"] img',
    ]) or meta_content(soup, "og:image", "twitter:image")
    return PlatformImages(profile=profile)


@register_extractor(Platform.X)
def extract_x(soup: BeautifulSoup) -> PlatformImages:
    profile = first_match(soup, [
        'a[href$="/photo"] img[src*="profile_images"]',
        'img[alt*="Profile image"][src*="profile_images"]',
        'div[data-testid="UserAvatar-Container"] img[src*="profile_images"]',
    ]) or meta_content(soup, "og:image", "twitter:image")

    banner = first_match(soup, [
        'a[href$="/header_photo"] img',
        'div[data-testid="UserProfileHeader_Banner"] img',
    ])
    if not banner and meta_content(soup, "twitter:card") == "summary_large_image":
        card_image = meta_content(soup, "twitter:image")
        if card_image and card_image != profile:
            banner = card_image
    return PlatformImages(profile=profile, banner=banner)


@register_extractor(Platform.LINKEDIN)
def extract_linkedin(soup: BeautifulSoup) -> PlatformImages:
    profile = first_match(soup, [
        "img.profile-photo-edit__preview",
        "img.pv-top-card-profile-picture__image",
        "section.profile-photo-edit img",
    ]) or meta_content(soup, "og:image")

    banner = None
    banner_div = soup.select_one("div.profile-top-card__banner")
    if banner_div is not None:
        match = BACKGROUND_IMAGE_RE.search(banner_div.get("style", ""))
        if match and match.group(2):
            banner = match.group(2)
    if not banner:
        banner = first_match(soup, ["img.profile-banner-image__image"])
    return PlatformImages(profile=profile, banner=banner)


@register_extractor(Platform.BLUESKY)
def extract_bluesky(soup: BeautifulSoup) -> PlatformImages:
    profile = meta_content(soup, "og:image", "twitter:image") or first_match(soup, [
        'img[alt*="avatar"][src*="cdn.bsky.app/img/avatar"]',
        'img[src*="cdn.bsky.app/img/avatar/plain/"]',
    ])
    return PlatformImages(profile=profile)
