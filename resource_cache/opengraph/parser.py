"""
OpenGraph / Twitter card extraction from page HTML
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..schemas import FallbackImageData
from ..utils import classify_url, construct_asset_url, is_valid_image_url
from .extractors import extract_platform_images, meta_content

logger = logging.getLogger(__name__)


def extract_opengraph_tags(html: str, url: str) -> Dict[str, Optional[str]]:
    """Tag values in fallback order: og:* then twitter:* then plain HTML"""
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    page_title = title_tag.get_text(strip=True) if title_tag else None

    platform = classify_url(url)
    platform_images = extract_platform_images(platform, soup)

    return {
        "title": meta_content(soup, "og:title", "twitter:title") or page_title or None,
        "description": meta_content(soup, "og:description", "twitter:description", "description"),
        "site": meta_content(soup, "og:site_name", "twitter:site"),
        "type": meta_content(soup, "og:type"),
        "url": meta_content(soup, "og:url") or url,
        "image": meta_content(soup, "og:image"),
        "image_secure_url": meta_content(soup, "og:image:secure_url"),
        "image_url": meta_content(soup, "og:image:url"),
        "twitter_image": meta_content(soup, "twitter:image", "twitter:image:src"),
        "profile_image": platform_images.profile,
        "banner_image": platform_images.banner,
    }


def _resolve(candidate: Optional[str], base_url: str) -> Optional[str]:
    if not candidate or candidate.startswith("data:"):
        return None
    absolute = urljoin(base_url, candidate)
    return absolute if is_valid_image_url(absolute) else None


def fallback_hint_images(hint: Optional[FallbackImageData], asset_base_path: str = "/api/assets") -> List[str]:
    """Image references from an import pipeline, best first"""
    if hint is None:
        return []
    images = []
    if hint.image_url and is_valid_image_url(hint.image_url):
        images.append(hint.image_url)
    for asset_id in (hint.image_asset_id, hint.screenshot_asset_id):
        if not asset_id:
            continue
        try:
            images.append(construct_asset_url(asset_id, asset_base_path))
        except ValueError:
            logger.debug(f"Ignoring invalid asset id {asset_id!r}")
    return images


def select_best_image(tags: Dict[str, Optional[str]],
                      base_url: str,
                      fallback_hint: Optional[FallbackImageData] = None,
                      asset_base_path: str = "/api/assets") -> Optional[str]:
    page_candidates = [
        tags.get("image"),
        tags.get("image_secure_url"),
        tags.get("image_url"),
        tags.get("twitter_image"),
        tags.get("profile_image"),
    ]
    if classify_url(base_url).is_social:
        page_candidates.insert(0, tags.get("profile_image"))

    for candidate in page_candidates:
        resolved = _resolve(candidate, base_url)
        if resolved:
            return resolved

    hint_images = fallback_hint_images(fallback_hint, asset_base_path)
    return hint_images[0] if hint_images else None


def build_metadata(tags: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
    keys = ("title", "description", "site", "type", "url", "profile_image", "banner_image")
    return {key: tags.get(key) for key in keys if tags.get(key)}
