"""
Synthesized results for when no origin data can be had
"""

import time
from typing import Optional

from ..config import Settings
from ..rules import ImageRules
from ..schemas import FallbackImageData, ResourceResult, ResultSource
from ..utils import Platform, classify_url, get_hostname
from .parser import fallback_hint_images


def platform_fallback_image(platform: Platform, config: Settings) -> str:
    return {
        Platform.GITHUB: config.fallback_image_github,
        Platform.X: config.fallback_image_x,
        Platform.LINKEDIN: config.fallback_image_linkedin,
        Platform.BLUESKY: config.fallback_image_bluesky,
        Platform.DISCORD: config.fallback_image_discord,
    }.get(platform, config.fallback_image_opengraph)


def create_fallback_result(url: str,
                           error: str,
                           config: Settings,
                           rules: ImageRules,
                           fallback_hint: Optional[FallbackImageData] = None,
                           timestamp: Optional[float] = None) -> ResourceResult:
    """Fallback image precedence: hint image URL, hint asset, hint screenshot,
    then the platform default."""
    platform = classify_url(url)
    hint_images = fallback_hint_images(fallback_hint, config.asset_base_path)
    image_url = hint_images[0] if hint_images else platform_fallback_image(platform, config)

    hostname = get_hostname(url) or url
    if platform.is_social:
        title = f"Profile on {platform.value}"
        description = "Social media profile"
    else:
        title = hostname
        description = "Preview unavailable"

    return ResourceResult(
        url=url,
        image_url=image_url,
        banner_image_url=rules.platform_banners.get(platform.value),
        metadata={
            "title": title,
            "description": description,
            "site": hostname,
            "url": url,
        },
        timestamp=time.time() if timestamp is None else timestamp,
        source=ResultSource.FALLBACK,
        error=error,
    )
