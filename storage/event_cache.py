"""In-memory cache for the last fetched event list."""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from processor.models import Event

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached event list and its expiry on the cache clock."""
    value: Tuple[Event, ...]
    expires_at: float


class EventCache:
    """Single-slot cache holding the event list under a fixed key."""

    CACHE_KEY = 'events'

    def __init__(
        self,
        ttl_seconds: float = 300,
        cleanup_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize an empty cache.

        Args:
            ttl_seconds: Lifetime of a stored list (default: 5 minutes)
            cleanup_interval: Janitor period, defaults to twice the TTL
            clock: Monotonic time source, replaceable in tests
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.cleanup_interval = cleanup_interval or 2 * ttl_seconds
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()
        self._janitor = None
        self._stop = threading.Event()

    def get(self) -> Optional[Tuple[Event, ...]]:
        """
        Return the cached events, or None when absent or expired.

        An expired entry is left in place for purge_expired to reclaim.

        Returns:
            Tuple of Event objects in the order they were stored
        """
        with self._lock:
            entry = self._entries.get(self.CACHE_KEY)
            if entry is None or entry.expires_at <= self._clock():
                return None
            return entry.value

    def set(self, events: Sequence[Event]) -> None:
        """Store events, replacing any previous entry."""
        entry = CacheEntry(
            value=tuple(events),
            expires_at=self._clock() + self.ttl_seconds
        )
        with self._lock:
            self._entries[self.CACHE_KEY] = entry

    def purge_expired(self) -> int:
        """
        Drop the entry if it has expired.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if entry.expires_at <= now
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def start_janitor(self) -> None:
        """Start a daemon thread that purges expired entries periodically."""
        if self._janitor is not None:
            return
        self._stop.clear()
        self._janitor = threading.Thread(
            target=self._run_janitor,
            name='event-cache-janitor',
            daemon=True
        )
        self._janitor.start()
        logger.info(
            f"Cache janitor started (interval {self.cleanup_interval}s)"
        )

    def stop_janitor(self) -> None:
        if self._janitor is None:
            return
        self._stop.set()
        self._janitor.join()
        self._janitor = None

    def _run_janitor(self) -> None:
        while not self._stop.wait(self.cleanup_interval):
            self.purge_expired()
