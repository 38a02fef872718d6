"""
End-to-end tests for logo resolution
"""

from unittest.mock import AsyncMock

import pytest

from resource_cache.schemas import LogoSource
from resource_cache.services.logo_fetcher import default_providers, extract_favicon_links

from conftest import make_oversized_png, make_png

DOMAIN = "example.com"
GOOGLE_HD = "https://www.google.com/s2/favicons?domain=example.com&sz=256"
CLEARBIT_HD = "https://logo.clearbit.com/example.com?size=256"
GLOBE = "https://t0.gstatic.com/faviconV2?client=SOCIAL&fallback_opts=TYPE&type=DEFAULT&url=example.com"


@pytest.fixture
def logo_bytes():
    return make_png(128, 128, noise=True)


class TestProviders:
    def test_hd_before_md_before_last_resort(self):
        labels = [p.label for p in default_providers()]
        assert labels == ["google-hd", "clearbit-hd", "google-md", "clearbit-md", "duckduckgo"]

    def test_clearbit_can_be_disabled(self):
        assert [p.label for p in default_providers(enable_clearbit=False)] == [
            "google-hd", "google-md", "duckduckgo",
        ]

    def test_favicon_links(self):
        html = """<head>
        <link rel="icon" href="/static/icon.png">
        <link rel="apple-touch-icon" href="https://cdn.example.com/touch.png">
        <link rel="stylesheet" href="/main.css">
        </head>"""
        assert extract_favicon_links(html, "https://example.com/") == [
            "https://cdn.example.com/touch.png",
            "https://example.com/static/icon.png",
        ]


class TestFetchLogo:
    @pytest.mark.asyncio
    async def test_exhaustion_returns_empty_result_and_counts_one_failure(self, services, origin):
        result = await services.logos.fetch_logo(DOMAIN)

        assert result.buffer is None
        assert result.source is None
        assert services.tracker.failure_count(DOMAIN) == 1
        assert origin.count(GOOGLE_HD) == 1
        assert "https://example.com/favicon.ico" in origin.requests

    @pytest.mark.asyncio
    async def test_first_provider_success_is_stored(self, services, origin, store, logo_bytes):
        origin.add(GOOGLE_HD, logo_bytes, content_type="image/png")

        result = await services.logos.fetch_logo("https://www.example.com/about")

        assert result.source == LogoSource.GOOGLE
        assert result.content_type == "image/png"
        assert result.storage_key == "images/logos/example-com_google.png"
        assert await store.read(result.storage_key) == result.buffer
        assert len(origin.requests) == 1

    @pytest.mark.asyncio
    async def test_memory_hit_makes_no_requests(self, services, origin, logo_bytes):
        origin.add(GOOGLE_HD, logo_bytes, content_type="image/png")
        await services.logos.fetch_logo(DOMAIN)

        again = await services.logos.fetch_logo(DOMAIN)

        assert again.source == LogoSource.GOOGLE
        assert len(origin.requests) == 1

    @pytest.mark.asyncio
    async def test_globe_redirect_rejected(self, services, origin, logo_bytes):
        origin.redirect(GOOGLE_HD, GLOBE)
        origin.add(GLOBE, logo_bytes, content_type="image/png")
        origin.add(CLEARBIT_HD, logo_bytes, content_type="image/png")

        result = await services.logos.fetch_logo(DOMAIN)

        assert result.source == LogoSource.CLEARBIT
        assert result.url == CLEARBIT_HD

    @pytest.mark.asyncio
    async def test_tiny_icon_skipped(self, services, origin, logo_bytes):
        origin.add(GOOGLE_HD, make_png(10, 10, noise=True), content_type="image/png")
        origin.add(CLEARBIT_HD, logo_bytes, content_type="image/png")

        result = await services.logos.fetch_logo(DOMAIN)

        assert result.source == LogoSource.CLEARBIT

    @pytest.mark.asyncio
    async def test_icon_declaring_huge_size_skipped(self, services, origin, logo_bytes):
        origin.add(GOOGLE_HD, make_oversized_png(), content_type="image/png")
        origin.add(CLEARBIT_HD, logo_bytes, content_type="image/png")

        result = await services.logos.fetch_logo(DOMAIN)

        assert result.source == LogoSource.CLEARBIT

    @pytest.mark.asyncio
    async def test_svg_logo_kept_as_svg(self, services, origin, store):
        svg = b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10">' + b"<rect/>" * 20 + b"</svg>"
        origin.add(GOOGLE_HD, svg, content_type="image/svg+xml")

        result = await services.logos.fetch_logo(DOMAIN)

        assert result.content_type == "image/svg+xml"
        assert result.storage_key == "images/logos/example-com_google.svg"
        assert await store.read(result.storage_key) == svg

    @pytest.mark.asyncio
    async def test_site_favicon_last_resort(self, services, origin, logo_bytes):
        origin.add("https://example.com/", b'<html><head><link rel="icon" href="/static/icon.png"></head></html>')
        origin.add("https://example.com/static/icon.png", logo_bytes, content_type="image/png")

        result = await services.logos.fetch_logo(DOMAIN)

        assert result.source == LogoSource.UNKNOWN
        assert result.storage_key == "images/logos/example-com_unknown.png"
        assert services.tracker.failure_count(DOMAIN) == 0

    @pytest.mark.asyncio
    async def test_store_hit_skips_providers(self, services, origin, store, logo_bytes):
        await store.write("images/logos/example-com_duckduckgo.png", logo_bytes, "image/png")

        result = await services.logos.fetch_logo(DOMAIN)

        assert result.source == LogoSource.DUCKDUCKGO
        assert result.buffer == logo_bytes
        assert origin.requests == []

    @pytest.mark.asyncio
    async def test_unchanged_logo_not_rewritten(self, services, origin, store, logo_bytes):
        origin.add(GOOGLE_HD, logo_bytes, content_type="image/png")
        store._write = AsyncMock(wraps=store._write)

        await services.logos.refresh(DOMAIN)
        await services.logos.refresh(DOMAIN)

        assert store._write.await_count == 1

    @pytest.mark.asyncio
    async def test_circuit_open_skips_network(self, services, origin):
        services.tracker.mark_failed(DOMAIN)
        services.tracker.mark_failed(DOMAIN)

        result = await services.logos.fetch_logo(DOMAIN)

        assert result.buffer is None
        assert "Circuit open" in result.error
        assert origin.requests == []

    @pytest.mark.asyncio
    async def test_serve_logo_reads_store_only(self, services, origin, store, logo_bytes):
        assert await services.logos.serve_logo(DOMAIN) is None
        await store.write("images/logos/example-com_clearbit.png", logo_bytes, "image/png")

        served = await services.logos.serve_logo("Example.com")

        assert served == (logo_bytes, "image/png")
        assert origin.requests == []
