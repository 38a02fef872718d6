from pydantic import BaseModel, Field, ValidationError
from typing import Optional, Dict, Any
from enum import Enum


class ResultSource(str, Enum):
    CACHE = "cache"
    EXTERNAL = "external"
    FALLBACK = "fallback"


class LogoSource(str, Enum):
    GOOGLE = "google"
    CLEARBIT = "clearbit"
    DUCKDUCKGO = "duckduckgo"
    UNKNOWN = "unknown"


class ResourceResult(BaseModel):
    """OpenGraph resolution result, persisted as JSON in the durable store"""
    url: str
    image_url: Optional[str] = None
    banner_image_url: Optional[str] = None
    metadata: Dict[str, Optional[str]] = Field(default_factory=dict)
    timestamp: float = 0
    source: ResultSource = ResultSource.EXTERNAL
    error: Optional[str] = None
    actual_url: Optional[str] = None

    def with_source(self, source: ResultSource) -> "ResourceResult":
        return self.model_copy(update={"source": source})


class FallbackImageData(BaseModel):
    """Image references handed over by an import pipeline (bookmark sync etc.)"""
    image_url: Optional[str] = None
    image_asset_id: Optional[str] = None
    screenshot_asset_id: Optional[str] = None

    @classmethod
    def parse(cls, raw: Any) -> Optional["FallbackImageData"]:
        if raw is None:
            return None
        if isinstance(raw, cls):
            return raw
        try:
            return cls.model_validate(raw)
        except ValidationError:
            return None
