"""RFC 3339 timestamp formatting."""
from datetime import datetime


def format_rfc3339(value: datetime) -> str:
    """
    Format a datetime as RFC 3339 with seconds precision.

    Naive values are taken as process-local time and get the UTC offset
    in effect at that instant. A zero offset is written as ``Z``.

    Args:
        value: Datetime to format

    Returns:
        Timestamp such as ``2024-02-01T00:00:00+09:00``
    """
    if value.tzinfo is None or value.utcoffset() is None:
        value = value.astimezone()
    text = value.replace(microsecond=0).isoformat()
    if text.endswith('+00:00'):
        text = text[:-6] + 'Z'
    return text
