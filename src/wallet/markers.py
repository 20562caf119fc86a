"""Freshness markers.

A marker is an integer count of microseconds since the epoch. Markers go
over the wire as decimal strings (the ``lastUpdated`` tag devices echo back
as ``passesUpdatedSince``).
"""

from django.utils import timezone


def now_marker() -> int:
    """Return the wall-clock marker for the current instant."""
    return int(timezone.now().timestamp() * 1_000_000)


def next_marker(previous: int) -> int:
    """Return a marker strictly greater than ``previous``.

    Uses the wall clock when it has moved past ``previous``; otherwise bumps
    ``previous`` by one so repeated changes in the same clock tick still
    order strictly.
    """
    return max(now_marker(), previous + 1)


def format_marker(marker: int) -> str:
    return str(marker)


def parse_marker(value: str | None) -> int | None:
    """Parse a marker tag sent by a device.

    Returns None for missing or malformed tags.
    """
    if not value:
        return None
    try:
        marker = int(value.strip())
    except (TypeError, ValueError):
        return None
    return marker if marker >= 0 else None
