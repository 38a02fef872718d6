"""
Tests for the durable store tier and image key lookup
"""

import pytest

from resource_cache.errors import StorageReadError
from resource_cache.keys import find_image_key
from resource_cache.storage import FileSystemObjectStore, InMemoryObjectStore


@pytest.fixture(params=["memory", "filesystem"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryObjectStore()
    return FileSystemObjectStore(str(tmp_path / "objects"))


class TestObjectStore:
    @pytest.mark.asyncio
    async def test_missing_key_reads_none(self, any_store):
        assert await any_store.read("images/logos/nothing.png") is None
        assert not await any_store.exists("images/logos/nothing.png")

    @pytest.mark.asyncio
    async def test_write_read_and_content_type(self, any_store):
        assert await any_store.write("images/logos/a_google.png", b"\x89PNGdata", "image/png")
        stored = await any_store.read_object("images/logos/a_google.png")
        assert stored.data == b"\x89PNGdata"
        assert stored.content_type == "image/png"

    @pytest.mark.asyncio
    async def test_json(self, any_store):
        await any_store.write_json("opengraph/metadata/abc.json", {"url": "https://example.com/"})
        assert await any_store.read_json("opengraph/metadata/abc.json") == {"url": "https://example.com/"}

    @pytest.mark.asyncio
    async def test_corrupt_json_raises_read_error(self, any_store):
        await any_store.write("opengraph/metadata/bad.json", b"{not json", "application/json")
        with pytest.raises(StorageReadError):
            await any_store.read_json("opengraph/metadata/bad.json")

    @pytest.mark.asyncio
    async def test_list_by_prefix(self, any_store):
        await any_store.write("images/logos/example-com_google.png", b"1")
        await any_store.write("images/logos/example-com_duckduckgo.png", b"2")
        await any_store.write("images/logos/other-com_google.png", b"3")
        await any_store.write("images/opengraph/x.png", b"4")
        assert await any_store.list("images/logos/example-com_") == [
            "images/logos/example-com_duckduckgo.png",
            "images/logos/example-com_google.png",
        ]
        assert len(await any_store.list("images/")) == 4

    @pytest.mark.asyncio
    async def test_delete(self, any_store):
        await any_store.write("images/opengraph/x.png", b"4")
        assert await any_store.delete("images/opengraph/x.png")
        assert not await any_store.delete("images/opengraph/x.png")

    @pytest.mark.asyncio
    async def test_read_only_skips_writes(self, tmp_path):
        store = InMemoryObjectStore(read_only=True)
        assert not await store.write("images/x.png", b"1")
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_filesystem_rejects_escaping_keys(self, tmp_path):
        store = FileSystemObjectStore(str(tmp_path / "objects"))
        await store.write("../../outside.png", b"1")
        assert not (tmp_path / "outside.png").exists()
        assert await store.read("outside.png") == b"1"


class TestFindImageKey:
    @pytest.mark.asyncio
    async def test_exact_key_hit(self, store):
        await store.write("images/opengraph/example-com-bm1.png", b"img")
        key = await find_image_key(store, "https://cdn.example.com/a.jpg", "images/opengraph",
                                   page_url="https://example.com/post", idempotency_key="bm1")
        assert key == "images/opengraph/example-com-bm1.png"

    @pytest.mark.asyncio
    async def test_svg_variant_hit(self, store):
        await store.write("images/opengraph/example-com-bm1.svg", b"<svg/>")
        key = await find_image_key(store, "https://cdn.example.com/a.jpg", "images/opengraph",
                                   page_url="https://example.com/post", idempotency_key="bm1")
        assert key == "images/opengraph/example-com-bm1.svg"

    @pytest.mark.asyncio
    async def test_listing_finds_token_under_other_domain(self, store):
        # Same bookmark, page moved to another host
        await store.write("images/opengraph/old-host-com-bm1.png", b"img")
        key = await find_image_key(store, "https://cdn.example.com/a.jpg", "images/opengraph",
                                   page_url="https://example.com/post", idempotency_key="bm1")
        assert key == "images/opengraph/old-host-com-bm1.png"

    @pytest.mark.asyncio
    async def test_miss(self, store):
        assert await find_image_key(store, "https://cdn.example.com/a.jpg", "images/opengraph") is None
