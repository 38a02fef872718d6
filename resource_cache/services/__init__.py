from .image_persistence import ImagePersistenceService
from .logo_fetcher import LogoFetcher
from .logo_service import LogoService
from .opengraph_service import OpenGraphService

__all__ = ["ImagePersistenceService", "LogoFetcher", "LogoService", "OpenGraphService"]
