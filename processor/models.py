"""Data models for calendar event processing."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from processor.timefmt import format_rfc3339


@dataclass(frozen=True)
class EventTime:
    """Start or end of an upstream event.

    Timed events carry ``date_time``; all-day events carry only ``date``.
    ``value`` prefers ``date_time`` and falls back to ``date``.
    """
    date_time: str = ''
    date: str = ''

    @property
    def value(self) -> str:
        return self.date_time or self.date

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> 'EventTime':
        if not isinstance(data, dict):
            return cls()
        return cls(
            date_time=data.get('dateTime') or '',
            date=data.get('date') or ''
        )


@dataclass(frozen=True)
class CalendarItem:
    """Raw event record returned by the calendar API."""
    summary: str
    start: EventTime
    end: EventTime
    description: str = ''
    location: str = ''

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'CalendarItem':
        return cls(
            summary=data.get('summary') or '',
            start=EventTime.from_api(data.get('start')),
            end=EventTime.from_api(data.get('end')),
            description=data.get('description') or '',
            location=data.get('location') or ''
        )


@dataclass(frozen=True)
class Event:
    """Flattened event served to the calendar panel."""
    title: str
    start: str
    end: str
    description: str = ''
    location: str = ''

    def to_dict(self) -> Dict[str, str]:
        """Wire form; empty description and location are left out."""
        data = {'title': self.title, 'start': self.start, 'end': self.end}
        if self.description:
            data['description'] = self.description
        if self.location:
            data['location'] = self.location
        return data


@dataclass(frozen=True)
class QueryWindow:
    """Time range passed to the calendar API."""
    time_min: datetime
    time_max: datetime

    @property
    def time_min_rfc3339(self) -> str:
        return format_rfc3339(self.time_min)

    @property
    def time_max_rfc3339(self) -> str:
        return format_rfc3339(self.time_max)
