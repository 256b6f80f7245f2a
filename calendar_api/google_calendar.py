"""Client for the Google Calendar events API."""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from processor.models import CalendarItem, QueryWindow

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/calendar.readonly']


class UpstreamError(Exception):
    """Raised when the calendar API call fails."""


class GoogleCalendarClient:
    """Lists events of a single Google calendar."""

    EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"

    def __init__(self, session: requests.Session, timeout: float = 30):
        """
        Initialize the client.

        Args:
            session: HTTP session; an AuthorizedSession in production
            timeout: Request timeout in seconds (default: 30)
        """
        self.session = session
        self.timeout = timeout

    @classmethod
    def from_service_account_info(
        cls,
        info: Dict[str, Any],
        timeout: float = 30
    ) -> 'GoogleCalendarClient':
        """
        Build a client authenticated with service account credentials.

        Args:
            info: Parsed service account key file
            timeout: Request timeout in seconds

        Returns:
            GoogleCalendarClient backed by an AuthorizedSession

        Raises:
            ValueError: If the credential info is incomplete
        """
        credentials = service_account.Credentials.from_service_account_info(
            info, scopes=SCOPES
        )
        return cls(AuthorizedSession(credentials), timeout=timeout)

    def close(self) -> None:
        self.session.close()

    def list_events(
        self,
        calendar_id: str,
        window: QueryWindow
    ) -> List[CalendarItem]:
        """
        List single event instances within a window, ordered by start time.

        Deleted events are excluded and recurring events are expanded.
        Only the first result page is read.

        Args:
            calendar_id: Target calendar identifier
            window: Time range to query

        Returns:
            List of CalendarItem objects in API order

        Raises:
            UpstreamError: On network, auth, HTTP status or payload errors
        """
        url = self.EVENTS_URL.format(calendar_id=quote(calendar_id, safe=''))
        params = {
            'timeMin': window.time_min_rfc3339,
            'timeMax': window.time_max_rfc3339,
            'showDeleted': 'false',
            'singleEvents': 'true',
            'orderBy': 'startTime'
        }
        logger.info(
            f"Listing events from {params['timeMin']} to {params['timeMax']}"
        )

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, GoogleAuthError, ValueError) as e:
            raise UpstreamError(f"Calendar API request failed: {e}") from e

        return self._parse_items(payload)

    def _parse_items(self, payload: Optional[Dict[str, Any]]) -> List[CalendarItem]:
        if not isinstance(payload, dict):
            raise UpstreamError("Calendar API returned a non-object payload")

        items = payload.get('items') or []
        if not isinstance(items, list):
            raise UpstreamError("Calendar API returned malformed items")

        events = [
            CalendarItem.from_api(item) for item in items
            if isinstance(item, dict)
        ]
        logger.info(f"Calendar API returned {len(events)} events")
        return events
