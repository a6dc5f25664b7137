"""
Utility functions for surveyor location processing.

Shared by the views, the event stream and the WebSocket consumer.
"""
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol, Sequence

from tracking_client.geo import haversine_km

logger = logging.getLogger(__name__)

# Gaps longer than this (and farther than INTERPOLATION_MIN_DISTANCE_KM) get filler points
INTERPOLATION_MIN_GAP = timedelta(minutes=5)
INTERPOLATION_MIN_DISTANCE_KM = 0.1
INTERPOLATION_MAX_POINTS = 10

_GROUP_UNSAFE = re.compile(r'[^A-Za-z0-9_.-]')
_SPACED_OFFSET = re.compile(r'(T[\d:.]+) (\d{2}:?\d{2})$')


def group_name(surveyor_id: str) -> str:
    """
    Return the channel layer group carrying a surveyor's live samples.

    Channels restricts group names to ASCII alphanumerics, hyphens,
    underscores and periods.
    """
    return f"location.{_GROUP_UNSAFE.sub('_', surveyor_id)}"[:99]


def parse_instant(value: str | None) -> datetime:
    """
    Parse an ISO 8601 query parameter into an aware UTC datetime.

    A value without zone designator is taken as UTC.

    Raises:
        ValueError: If the value is missing or not ISO 8601
    """
    if not value:
        raise ValueError("Expected ISO 8601 datetime, got nothing")
    # An unencoded '+' in a query string arrives as a space
    text = _SPACED_OFFSET.sub(r'\1+\2', value.strip())
    parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


class _Positioned(Protocol):
    latitude: float
    longitude: float
    timestamp: datetime


@dataclass(frozen=True)
class RoutePoint:
    """A track point on an enhanced route; ``interpolated`` marks filler points."""

    latitude: float
    longitude: float
    timestamp: datetime
    interpolated: bool = False


def enhance_route(points: Sequence[_Positioned]) -> list[RoutePoint]:
    """
    Fill long gaps in an ordered route with linearly interpolated points.

    A gap qualifies when consecutive points are more than five minutes and
    more than 100 m apart; it receives one point per two minutes of gap,
    at most ten.
    """
    route: list[RoutePoint] = []
    previous = None
    for point in points:
        if previous is not None:
            gap = point.timestamp - previous.timestamp
            distance = haversine_km(previous.latitude, previous.longitude, point.latitude, point.longitude)
            gap_minutes = int(gap.total_seconds() // 60)
            if gap_minutes > INTERPOLATION_MIN_GAP.total_seconds() // 60 and distance > INTERPOLATION_MIN_DISTANCE_KM:
                count = min(gap_minutes // 2, INTERPOLATION_MAX_POINTS)
                for j in range(1, count + 1):
                    factor = j / (count + 1)
                    route.append(RoutePoint(
                        latitude=previous.latitude + factor * (point.latitude - previous.latitude),
                        longitude=previous.longitude + factor * (point.longitude - previous.longitude),
                        timestamp=previous.timestamp + gap * factor,
                        interpolated=True,
                    ))
        route.append(RoutePoint(point.latitude, point.longitude, point.timestamp))
        previous = point
    return route
