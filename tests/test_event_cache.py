"""Unit tests for the event cache."""
import threading
import time

import pytest

from processor.models import Event
from storage.event_cache import EventCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Create an EventCache with a five minute TTL and a fake clock."""
    return EventCache(ttl_seconds=300, clock=clock)


@pytest.fixture
def sample_events():
    return [
        Event(title='Standup', start='2024-05-01T09:00:00Z', end='2024-05-01T09:30:00Z'),
        Event(title='Holiday', start='2024-05-06', end='2024-05-07',
              description='Office closed', location='Everywhere'),
    ]


class TestEventCache:
    """Test cases for EventCache."""

    def test_empty_cache_returns_none(self, cache):
        assert cache.get() is None

    def test_get_after_set(self, cache, sample_events):
        """Test that a stored list comes back unchanged within the TTL."""
        cache.set(sample_events)

        cached = cache.get()

        assert list(cached) == sample_events

    def test_get_just_before_expiry(self, cache, clock, sample_events):
        cache.set(sample_events)
        clock.now = 299.9

        assert cache.get() is not None

    def test_get_after_expiry(self, cache, clock, sample_events):
        """Test that an expired entry reads as absent, never stale."""
        cache.set(sample_events)
        clock.now = 300

        assert cache.get() is None
        assert cache.get() is None

    def test_set_overwrites(self, cache, clock, sample_events):
        cache.set(sample_events)
        clock.now = 200
        cache.set(sample_events[:1])
        clock.now = 400

        assert list(cache.get()) == sample_events[:1]

    def test_set_copies_input(self, cache, sample_events):
        """Test that later changes to the caller's list do not leak in."""
        cache.set(sample_events)
        sample_events.clear()

        assert len(cache.get()) == 2

    def test_empty_list_is_a_hit(self, cache):
        cache.set([])

        assert cache.get() == ()

    def test_purge_expired(self, cache, clock, sample_events):
        cache.set(sample_events)

        assert cache.purge_expired() == 0
        clock.now = 301
        assert cache.purge_expired() == 1
        assert cache.get() is None

    def test_expired_get_leaves_entry_for_purge(self, cache, clock, sample_events):
        """Test that reading an expired entry does not remove it."""
        cache.set(sample_events)
        clock.now = 301

        assert cache.get() is None
        assert EventCache.CACHE_KEY in cache._entries
        assert cache.purge_expired() == 1
        assert EventCache.CACHE_KEY not in cache._entries

    def test_default_cleanup_interval(self):
        assert EventCache(ttl_seconds=60).cleanup_interval == 120

    def test_invalid_ttl(self):
        with pytest.raises(ValueError):
            EventCache(ttl_seconds=0)

    def test_janitor_start_stop(self, sample_events):
        cache = EventCache(ttl_seconds=0.01, cleanup_interval=0.01)
        cache.set(sample_events)

        cache.start_janitor()
        cache.start_janitor()
        time.sleep(0.05)
        cache.stop_janitor()
        cache.stop_janitor()

        assert cache.get() is None

    def test_concurrent_get_and_set(self, sample_events):
        """Test that concurrent readers only ever see complete lists."""
        cache = EventCache(ttl_seconds=300)
        errors = []

        def writer():
            for i in range(500):
                cache.set(sample_events if i % 2 else sample_events[:1])

        def reader():
            for _ in range(500):
                value = cache.get()
                if value is not None and len(value) not in (1, 2):
                    errors.append(value)

        threads = [threading.Thread(target=writer) for _ in range(4)]
        threads += [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert cache.get() is not None
