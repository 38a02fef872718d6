"""
Error taxonomy for resource resolution.

Coordinators never let these escape to callers; they are raised inside
fetch/persist paths and converted into fallback results. The ``retryable``
flag is read by ``retry.is_retryable_error``.
"""

from typing import Optional


class ResourceError(Exception):
    retryable = False

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class InvalidUrl(ResourceError):
    pass


class CircuitOpen(ResourceError):
    def __init__(self, domain: str):
        super().__init__(f"Circuit open for domain {domain}")
        self.domain = domain


class FetchTimeout(ResourceError):
    retryable = True

    def __init__(self, url: str, timeout: float):
        super().__init__(f"Timed out after {timeout}s fetching {url}", url)
        self.timeout = timeout


class FetchConnectionError(ResourceError):
    retryable = True


class FetchHttpError(ResourceError):
    TERMINAL_STATUSES = (400, 401, 403, 404)

    def __init__(self, url: str, status_code: int):
        super().__init__(f"HTTP {status_code} fetching {url}", url)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code not in self.TERMINAL_STATUSES


class ContentTooLarge(ResourceError):
    def __init__(self, url: str, limit: int):
        super().__init__(f"Content too large (over {limit} bytes) at {url}", url)
        self.limit = limit


class HtmlTooLarge(ContentTooLarge):
    pass


class BufferTooSmall(ResourceError):
    def __init__(self, url: str, size: int):
        super().__init__(f"Image buffer too small ({size} bytes) from {url}", url)
        self.size = size


class GenericPlaceholderRejected(ResourceError):
    def __init__(self, url: str):
        super().__init__(f"Generic placeholder image rejected: {url}", url)


class StorageError(ResourceError):
    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class StorageReadError(StorageError):
    pass


class StorageWriteError(StorageError):
    pass
