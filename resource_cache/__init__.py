"""
OpenGraph metadata and logo resolution with a three-tier cache
(process memory, durable object store, origin).
"""

from .deps import ResourceServices, build_services
from .models import LogoResult
from .schemas import FallbackImageData, LogoSource, ResourceResult, ResultSource

__all__ = [
    "FallbackImageData",
    "LogoResult",
    "LogoSource",
    "ResourceResult",
    "ResourceServices",
    "ResultSource",
    "build_services",
]
