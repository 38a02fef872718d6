from resource_cache.memory_cache import MemoryCache

from conftest import FakeClock


def make_cache(clock, **kwargs):
    params = dict(success_ttl=100, failure_ttl=10, retention=1000, max_entries=3, clock=clock)
    params.update(kwargs)
    return MemoryCache(**params)


class TestMemoryCache:
    def test_fresh_then_stale_then_dropped(self):
        clock = FakeClock()
        cache = make_cache(clock)
        cache.set("a", "value")

        entry = cache.get("a")
        assert entry.value == "value"
        assert cache.is_fresh(entry)

        clock.advance(150)
        entry = cache.get("a")
        assert entry is not None
        assert not cache.is_fresh(entry)

        clock.advance(1000)
        assert cache.get("a") is None
        assert "a" not in cache

    def test_failure_entries_expire_sooner(self):
        clock = FakeClock()
        cache = make_cache(clock)
        cache.set("ok", 1)
        cache.set("bad", 2, is_failure=True)
        clock.advance(50)
        assert cache.is_fresh(cache.get("ok"))
        assert not cache.is_fresh(cache.get("bad"))

    def test_oldest_entries_evicted(self):
        cache = make_cache(FakeClock())
        for key in "abcd":
            cache.set(key, key)
        assert len(cache) == 3
        assert cache.get("a") is None
        assert cache.get("d").value == "d"

    def test_update_keeps_age(self):
        clock = FakeClock()
        cache = make_cache(clock)
        cache.set("a", 1)
        clock.advance(60)
        cache.update("a", 2)
        entry = cache.get("a")
        assert entry.value == 2
        clock.advance(50)
        assert not cache.is_fresh(entry)

    def test_retention_never_below_ttl(self):
        cache = MemoryCache(success_ttl=100, failure_ttl=10, retention=5)
        assert cache.retention == 100

    def test_delete_and_clear(self):
        cache = make_cache(FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.delete("a")
        assert not cache.delete("a")
        cache.clear()
        assert len(cache) == 0
