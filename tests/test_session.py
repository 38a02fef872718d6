"""
Tests for the per-domain circuit breaker
"""

from resource_cache.session import DomainSessionTracker

from conftest import FakeClock


def make_tracker(clock, **kwargs):
    params = dict(threshold=2, session_window=1800, max_domains=3, clock=clock)
    params.update(kwargs)
    return DomainSessionTracker(**params)


class TestDomainSessionTracker:
    def test_opens_at_threshold(self):
        tracker = make_tracker(FakeClock())
        assert not tracker.has_failed_too_many_times("example.com")
        tracker.mark_failed("example.com")
        assert not tracker.has_failed_too_many_times("example.com")
        tracker.mark_failed("example.com")
        assert tracker.has_failed_too_many_times("example.com")
        assert not tracker.has_failed_too_many_times("other.com")

    def test_resets_after_session_window(self):
        clock = FakeClock()
        tracker = make_tracker(clock)
        tracker.mark_failed("example.com")
        tracker.mark_failed("example.com")
        clock.advance(1799)
        assert tracker.has_failed_too_many_times("example.com")
        clock.advance(1)
        assert not tracker.has_failed_too_many_times("example.com")
        assert tracker.failure_count("example.com") == 0

    def test_success_clears_domain(self):
        tracker = make_tracker(FakeClock())
        tracker.mark_failed("example.com")
        tracker.clear("example.com")
        assert tracker.failure_count("example.com") == 0
        assert tracker.get_state("example.com") is None

    def test_state_records_session_start(self):
        clock = FakeClock(start=500.0)
        tracker = make_tracker(clock)
        tracker.mark_failed("example.com")
        state = tracker.get_state("example.com")
        assert state.failure_count == 1
        assert state.session_start == 500.0

    def test_domain_limit_resets_session(self):
        tracker = make_tracker(FakeClock())
        for domain in ("a.com", "b.com", "c.com"):
            tracker.mark_failed(domain)
            tracker.mark_failed(domain)
        assert len(tracker) == 3
        tracker.mark_failed("d.com")
        assert len(tracker) == 1
        assert not tracker.has_failed_too_many_times("a.com")
        assert tracker.failure_count("d.com") == 1

    def test_manual_reset(self):
        tracker = make_tracker(FakeClock())
        tracker.mark_failed("a.com")
        tracker.mark_failed("a.com")
        tracker.reset()
        assert not tracker.has_failed_too_many_times("a.com")
