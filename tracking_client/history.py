"""
Historical track queries.

Normalizes the backend's response shapes into an ordered, bounded
``Track`` ready for rendering.
"""
import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime, tzinfo
from typing import Any

from .api import BackendClient
from .errors import BackendError, ServerRejected, ValidationError
from .fallback import FallbackPolicy
from .geo import haversine_km
from .models import Track, TrackPoint, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


def normalize_track_payload(payload: Any) -> list[TrackPoint]:
    """
    Extract track points from a track response body.

    Accepts a bare list of records or a ``{"content": [...]}`` envelope;
    ``None`` (HTTP 204) is empty. Records without usable coordinates or
    timestamp are skipped.
    """
    if payload is None:
        return []
    if isinstance(payload, dict):
        items = payload.get('content')
        if items is None:
            logger.warning("Unrecognized track response keys: %s", sorted(payload))
            return []
    elif isinstance(payload, list):
        items = payload
    else:
        logger.warning("Unrecognized track response type: %s", type(payload).__name__)
        return []

    points = []
    skipped = 0
    for item in items:
        if not isinstance(item, dict):
            skipped += 1
            continue
        lat = item.get('latitude', item.get('lat'))
        lng = item.get('longitude', item.get('lng'))
        if lat is None or lng is None:
            skipped += 1
            continue
        try:
            points.append(TrackPoint(lat=float(lat), lng=float(lng),
                                     timestamp=parse_timestamp(item.get('timestamp'))))
        except (TypeError, ValueError):
            skipped += 1
    if skipped:
        logger.debug("Skipped %d track records without usable coordinates", skipped)
    return points


def describe_failure(error: BackendError) -> str:
    """Short operator-facing reason for a backend failure."""
    if isinstance(error, ServerRejected):
        return f"backend returned HTTP {error.status_code}"
    return "backend unreachable"


def reduce_polyline(points: Sequence[TrackPoint], max_points: int) -> list[TrackPoint]:
    """
    Thin a polyline to at most ``max_points`` points by even striding.

    The first and last points are always kept.
    """
    if max_points < 2:
        raise ValueError(f"Expected max_points of at least 2, got {max_points}")
    if len(points) <= max_points:
        return list(points)
    last = len(points) - 1
    step = last / (max_points - 1)
    indices = sorted({round(i * step) for i in range(max_points)})
    return [points[i] for i in indices]


class HistoricalTrackFetcher:
    """
    Fetches a subject's track over a time range.

    Args:
        backend: Backend client
        fallback: Substitutes a demo track on backend failure; without one
            the failure propagates
        max_points: Upper bound on returned points
        local_tz: Zone for naive bounds; the system local zone when None
    """

    def __init__(
        self,
        backend: BackendClient,
        fallback: FallbackPolicy | None = None,
        max_points: int = 1000,
        local_tz: tzinfo | None = None,
    ) -> None:
        self.backend = backend
        self.fallback = fallback
        self.max_points = max_points
        self.local_tz = local_tz

    def to_utc(self, value: datetime) -> datetime:
        """Interpret a bound in the caller's zone and convert it to UTC."""
        if value.tzinfo is None:
            if self.local_tz is not None:
                value = value.replace(tzinfo=self.local_tz)
            else:
                value = value.astimezone()
        return value.astimezone(UTC)

    async def fetch(self, subject_id: str, start: datetime | None, end: datetime | None) -> Track:
        """
        Fetch, order and reduce a track.

        Raises:
            ValidationError: If the subject or a bound is missing, or start > end
            BackendError: If the backend fails and no fallback policy is set
        """
        if not subject_id or not subject_id.strip():
            raise ValidationError("Please select a surveyor first")
        if start is None or end is None:
            raise ValidationError("Please select both start and end times")
        start_utc = self.to_utc(start)
        end_utc = self.to_utc(end)
        if start_utc > end_utc:
            raise ValidationError("Start time must be before end time")

        try:
            payload = await self.backend.track(
                subject_id, format_timestamp(start_utc), format_timestamp(end_utc)
            )
        except BackendError as e:
            if self.fallback is None:
                raise
            logger.warning("Track query for %s failed, using demo route: %s", subject_id, e)
            track = self.fallback.historical_track(subject_id, start_utc, end_utc)
            return replace(track, fallback_reason=describe_failure(e))

        points = normalize_track_payload(payload)
        raw_count = len(points)
        points.sort(key=lambda p: p.timestamp)
        points = reduce_polyline(points, self.max_points)

        distance = None
        if len(points) >= 2:
            distance = haversine_km(points[0].lat, points[0].lng, points[-1].lat, points[-1].lng)

        logger.info("Fetched %d points (%d after reduction) for %s", raw_count, len(points), subject_id)
        return Track(
            subject_id=subject_id,
            start=start_utc,
            end=end_utc,
            points=tuple(points),
            distance_km=distance,
            raw_count=raw_count,
        )
