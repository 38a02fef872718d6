from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Durable store
    storage_root: str = "/data/resource-cache"
    storage_read_only: bool = False

    # Outbound HTTP
    http_user_agents: List[str] = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    ]
    http_referer: str = "https://www.google.com/"
    proxy_enabled: bool = False
    http_proxy: Optional[str] = None

    # OpenGraph fetch
    og_fetch_timeout_sec: float = 7.0
    og_max_attempts: int = 2
    og_backoff_base_sec: float = 1.0
    og_backoff_max_sec: float = 5.0
    og_max_html_bytes: int = 1048576  # 1 MiB
    og_rate_limit_requests: int = 10
    og_rate_limit_window_sec: float = 1.0
    og_cache_success_sec: int = 86400  # 24 hours
    og_cache_failure_sec: int = 3600  # 1 hour
    og_skip_external_fetch: bool = False

    # Image download / validation
    image_fetch_timeout_sec: float = 10.0
    image_max_bytes: int = 5242880  # 5MB
    image_min_bytes: int = 100
    image_min_dimension: int = 16
    image_min_area: int = 1024
    image_rate_limit_requests: int = 10
    image_rate_limit_window_sec: float = 1.0

    # Logos
    logo_fetch_timeout_sec: float = 5.0
    logo_max_attempts: int = 2
    logo_backoff_base_sec: float = 0.5
    logo_backoff_max_sec: float = 2.0
    logo_rate_limit_requests: int = 20
    logo_rate_limit_window_sec: float = 1.0
    logo_cache_success_sec: int = 2592000  # 30 days
    logo_cache_failure_sec: int = 86400  # 1 day
    logo_enable_clearbit: bool = True

    # Per-domain circuit breaker
    domain_failure_threshold: int = 2
    domain_session_window_sec: int = 1800  # 30 minutes
    max_tracked_domains: int = 500

    # In-process cache
    memory_cache_max_entries: int = 5000
    memory_cache_retention_sec: int = 259200  # 3 days

    # Fallback images, one per known platform
    fallback_image_github: str = "https://avatars.githubusercontent.com/u/99231285?v=4"
    fallback_image_x: str = "https://pbs.twimg.com/profile_images/1515007138717503494/KUQNKo_M_400x400.jpg"
    fallback_image_linkedin: str = "https://media.licdn.com/dms/image/C5603AQGjv8C3WhrUfQ/profile-displayphoto-shrink_800_800/0/1651775977276"
    fallback_image_bluesky: str = "https://cdn.bsky.app/img/avatar/plain/did:plc:o3rar2atqxlmczkaf6npbcqz/bafkreidpq75jyggvzlm5ddgpzhfkm4vprgitpxukqpgkrwr6sqx54b2oka@jpeg"
    fallback_image_discord: str = "/images/social-pics/discord.jpg"
    fallback_image_opengraph: str = "/images/opengraph-placeholder.png"
    asset_base_path: str = "/api/assets"

    # YAML rules file (placeholder patterns, domain aliases, banners)
    image_rules_path: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
