"""Event normalization and the cached fetch pipeline."""
import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional, Sequence, Tuple

from calendar_api.google_calendar import UpstreamError
from processor.models import CalendarItem, Event
from processor.window import MONTHS_POLICY, compute_window
from storage.event_cache import EventCache

logger = logging.getLogger(__name__)


def transform_event(item: CalendarItem) -> Event:
    """
    Convert one calendar API record into an Event.

    The precise date-time wins over the all-day date for start and end.
    Missing text fields become empty strings.
    """
    return Event(
        title=item.summary,
        start=item.start.value,
        end=item.end.value,
        description=item.description,
        location=item.location
    )


class EventFetcher:
    """Serves events from the cache, refreshing from the calendar API on a miss."""

    def __init__(
        self,
        client,
        calendar_id: str,
        cache: EventCache,
        window_policy: str = MONTHS_POLICY,
        days_ahead: int = 90,
        timezone: Optional[tzinfo] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the fetcher.

        Args:
            client: Object with list_events(calendar_id, window); may be None
                when every call is expected to hit the cache
            calendar_id: Target calendar identifier
            cache: Shared EventCache
            window_policy: 'months' or 'upcoming'
            days_ahead: Horizon for the 'upcoming' policy
            timezone: Zone for window boundaries, process local when None
            now: Clock override for tests
        """
        self.client = client
        self.calendar_id = calendar_id
        self.cache = cache
        self.window_policy = window_policy
        self.days_ahead = days_ahead
        self.timezone = timezone
        self._now = now or self._default_now

    def _default_now(self) -> datetime:
        return datetime.now(self.timezone)

    def fetch_events(self) -> Tuple[Event, ...]:
        """
        Return cached events, or fetch, normalize and cache them.

        Concurrent misses may each call the API; the last write wins.

        Returns:
            Tuple of Event objects in API order

        Raises:
            UpstreamError: If the calendar API call fails; the cache is
                left untouched
        """
        cached = self.cache.get()
        if cached is not None:
            logger.debug(f"Cache hit ({len(cached)} events)")
            return cached

        if self.client is None:
            raise UpstreamError("No calendar client configured")

        window = compute_window(self._now(), self.window_policy, self.days_ahead)
        logger.info("Cache miss, fetching events from calendar")
        items = self.client.list_events(self.calendar_id, window)

        events = self.process_items(items)
        self.cache.set(events)
        logger.info(f"Cached {len(events)} events")
        return events

    @staticmethod
    def process_items(items: Sequence[CalendarItem]) -> Tuple[Event, ...]:
        return tuple(transform_event(item) for item in items)
