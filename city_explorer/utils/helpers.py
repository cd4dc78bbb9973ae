"""
Utility helper functions for safe data handling.
"""
from datetime import datetime, timezone
from typing import Any, Optional


def safe_str(value: Any, default: Optional[str] = None) -> Optional[str]:
    """
    Safely convert value to string, handling None.

    Args:
        value: Any value to convert
        default: Default if value is None

    Returns:
        String representation or default
    """
    if value is None:
        return default
    return str(value)


def safe_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """
    Safely convert value to float, handling None and invalid values.
    """
    if value is None:
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def safe_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """
    Safely convert value to int, handling None and invalid values.
    """
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def truncate(value: Optional[str], limit: int) -> Optional[str]:
    """Cut a string to at most `limit` characters."""
    if value is None:
        return None
    return value[:limit]


def format_day(moment: datetime) -> str:
    """Render a date as 'Www Mmm DD YYYY', e.g. 'Mon Jan 01 2024'."""
    return moment.strftime("%a %b %d %Y")


def day_from_epoch(seconds: Any) -> Optional[str]:
    """Render epoch seconds (UTC) as a day string."""
    stamp = safe_float(seconds)
    if stamp is None:
        return None
    return format_day(datetime.fromtimestamp(stamp, tz=timezone.utc))


def day_from_iso(value: Any) -> Optional[str]:
    """Render an ISO-8601 timestamp as a day string, or None if unparseable."""
    if not value:
        return None
    try:
        return format_day(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None
