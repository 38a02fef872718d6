from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from .schemas import LogoSource

T = TypeVar("T")


@dataclass
class LogoResult:
    domain: str
    buffer: Optional[bytes] = None
    source: Optional[LogoSource] = None
    content_type: str = "image/png"
    storage_key: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class CacheEntry(Generic[T]):
    value: T
    timestamp: float
    is_failure: bool = False


@dataclass
class DomainFailureState:
    domain: str
    failure_count: int = 0
    session_start: float = 0.0


@dataclass
class ProcessedImage:
    buffer: bytes
    is_svg: bool
    content_type: str

    @property
    def extension(self) -> str:
        if self.is_svg:
            return "svg"
        if self.content_type == "image/png":
            return "png"
        return "bin"


@dataclass
class FetchResponse:
    url: str
    final_url: str
    status_code: int
    body: bytes
    content_type: Optional[str] = None
    encoding: Optional[str] = None
    too_large: bool = False

    @property
    def text(self) -> str:
        return self.body.decode(self.encoding or "utf-8", errors="replace")


@dataclass
class PlatformImages:
    profile: Optional[str] = None
    banner: Optional[str] = None


@dataclass
class ExternalLogo:
    buffer: bytes
    source: LogoSource
    content_type: str
    url: str
    is_svg: bool = False


@dataclass
class StoredObject:
    key: str
    data: bytes
    content_type: str = "application/octet-stream"
    metadata: dict = field(default_factory=dict)
