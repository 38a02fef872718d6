"""
Shared fixtures: fake clock, test settings, PNG factory and a mock origin
"""

import io
import os
import struct
import zlib
from typing import Callable, Dict, List, Tuple

import httpx
import pytest
import pytest_asyncio
from PIL import Image

from resource_cache.config import Settings
from resource_cache.deps import build_services
from resource_cache.storage import InMemoryObjectStore


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockOrigin:
    """Routes requests to canned responses and records every URL requested"""

    def __init__(self):
        self.routes: Dict[str, Tuple[int, bytes, Dict[str, str]]] = {}
        self.requests: List[str] = []
        self.default_status = 404

    def add(self, url: str, body: bytes = b"", status: int = 200, content_type: str = "text/html") -> None:
        self.routes[url] = (status, body, {"content-type": content_type})

    def redirect(self, url: str, location: str) -> None:
        self.routes[url] = (302, b"", {"location": location})

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        status, body, headers = self.routes.get(url, (self.default_status, b"", {}))
        return httpx.Response(status, content=body, headers=headers)

    def count(self, url: str) -> int:
        return self.requests.count(url)


def make_png(width: int, height: int, color=(200, 30, 30), noise: bool = False) -> bytes:
    """Solid PNG, or random pixels when ``noise`` (keeps the file above size floors)"""
    if noise:
        image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    else:
        image = Image.new("RGB", (width, height), color)
    out = io.BytesIO()
    image.save(out, "PNG")
    return out.getvalue()


def make_oversized_png(width: int = 30000, height: int = 30000) -> bytes:
    """Tiny PNG whose header declares more pixels than Pillow agrees to open"""
    def chunk(kind: bytes, data: bytes) -> bytes:
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))

    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    pixels = zlib.compress(os.urandom(512))
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IDAT", pixels) + chunk(b"IEND", b"")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    return make_png


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        storage_root=str(tmp_path / "store"),
        og_backoff_base_sec=0,
        og_backoff_max_sec=0,
        logo_backoff_base_sec=0,
        logo_backoff_max_sec=0,
        og_rate_limit_requests=1000,
        logo_rate_limit_requests=1000,
        image_rate_limit_requests=1000,
    )


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def origin():
    return MockOrigin()


@pytest_asyncio.fixture
async def services(test_settings, store, origin, clock):
    client = httpx.AsyncClient(transport=httpx.MockTransport(origin.handler), follow_redirects=True)
    built = build_services(test_settings, store=store, client=client, clock=clock)
    yield built
    await built.close()
