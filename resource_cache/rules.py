"""
Image rules loaded from YAML: placeholder URL patterns, domain aliases and
per-platform fallback banners.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "image_rules.yml"


@dataclass
class ImageRules:
    placeholder_patterns: List[re.Pattern] = field(default_factory=list)
    domain_aliases: Dict[str, str] = field(default_factory=dict)
    platform_banners: Dict[str, str] = field(default_factory=dict)

    def is_placeholder_url(self, url: Optional[str]) -> bool:
        if not url:
            return False
        return any(pattern.search(url) for pattern in self.placeholder_patterns)


def load_image_rules(path: Optional[str] = None) -> ImageRules:
    """Load rules from ``path``, falling back to the bundled file"""
    rules_path = Path(path) if path else DEFAULT_RULES_PATH
    raw = {}
    if rules_path.exists():
        try:
            with open(rules_path) as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load image rules from {rules_path}: {e}")
    else:
        logger.warning(f"Image rules file not found: {rules_path}")

    patterns = []
    for expr in raw.get("placeholder_patterns", []):
        try:
            patterns.append(re.compile(expr, re.IGNORECASE))
        except re.error as e:
            logger.error(f"Skipping invalid placeholder pattern {expr!r}: {e}")

    return ImageRules(
        placeholder_patterns=patterns,
        domain_aliases={str(k).lower(): str(v).lower() for k, v in (raw.get("domain_aliases") or {}).items()},
        platform_banners={str(k): str(v) for k, v in (raw.get("platform_banners") or {}).items()},
    )
