"""
Domain types for the tracking client.

Samples and track points are immutable values; sessions and render
states are recomputed rather than mutated.
"""
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class TrackingMode(Enum):
    """What the current dashboard session is showing."""

    IDLE = "idle"
    LIVE = "live"
    HISTORICAL = "historical"


class ConnectionStatus(Enum):
    """Connection status of the live feed, observable at all times."""

    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    ERROR = "Error"


class SubjectStatus(Enum):
    """Online/offline status reported by the backend status map."""

    ONLINE = "Online"
    OFFLINE = "Offline"

    @classmethod
    def parse(cls, value: Any) -> "SubjectStatus":
        """Map a backend status value ("Online", True, ...) to a status."""
        if isinstance(value, bool):
            return cls.ONLINE if value else cls.OFFLINE
        if str(value).strip().lower() == "online":
            return cls.ONLINE
        return cls.OFFLINE


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a wire timestamp into an aware UTC datetime.

    Accepts ISO 8601 strings (with or without a zone suffix; no suffix
    means UTC), Unix timestamps, and datetimes.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(float(value), tz=UTC)
    elif isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    else:
        raise ValueError(f"Expected ISO 8601 timestamp, got {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as ISO 8601 UTC with second precision."""
    return value.astimezone(UTC).strftime('%Y-%m-%dT%H:%M:%SZ')


@dataclass(frozen=True)
class TrackPoint:
    """A normalized position once data leaves the wire format."""

    lat: float
    lng: float
    timestamp: datetime


@dataclass(frozen=True)
class LocationSample:
    """
    One GPS fix for a subject.

    Attributes:
        subject_id: Identifier of the tracked surveyor
        latitude: Decimal degrees, -90 to +90
        longitude: Decimal degrees, -180 to +180
        captured_at: Aware UTC capture time
    """

    subject_id: str
    latitude: float
    longitude: float
    captured_at: datetime

    def __post_init__(self) -> None:
        if not -90 <= self.latitude <= 90:
            raise ValueError(f"Expected latitude between -90 and +90 degrees, got {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise ValueError(f"Expected longitude between -180 and +180 degrees, got {self.longitude}")
        if self.captured_at.tzinfo is None:
            raise ValueError("Expected timezone-aware capture time, got naive datetime")

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the ingest wire format."""
        return {
            "surveyorId": self.subject_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": format_timestamp(self.captured_at),
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any], subject_id: str | None = None) -> "LocationSample":
        """
        Build a sample from a backend record.

        Args:
            data: Record with latitude, longitude, timestamp and a subject id
                under ``surveyorId`` or ``subjectId``
            subject_id: Fallback subject id when the record carries none

        Raises:
            ValueError: If coordinates or timestamp are missing or invalid
        """
        sid = data.get('surveyorId') or data.get('subjectId') or subject_id
        if not sid:
            raise ValueError("Expected 'surveyorId' in location record, got neither")
        lat = data.get('latitude')
        lon = data.get('longitude')
        if lat is None or lon is None:
            raise ValueError(f"Expected latitude and longitude, got lat={lat}, lon={lon}")
        return cls(
            subject_id=str(sid),
            latitude=float(lat),
            longitude=float(lon),
            captured_at=parse_timestamp(data.get('timestamp')),
        )

    def to_point(self) -> TrackPoint:
        """Return the sample as a map point."""
        return TrackPoint(lat=self.latitude, lng=self.longitude, timestamp=self.captured_at)


@dataclass(frozen=True)
class Track:
    """
    An ordered sequence of points for one subject over a closed range.

    ``raw_count`` is the number of points the backend returned before the
    polyline was reduced. ``fallback_reason`` says why a demo track stands in
    for the real one.
    """

    subject_id: str
    start: datetime
    end: datetime
    points: tuple[TrackPoint, ...] = ()
    distance_km: float | None = None
    is_fallback: bool = False
    raw_count: int = 0
    fallback_reason: str | None = None

    @property
    def no_data_in_range(self) -> bool:
        """True when the query succeeded but returned nothing."""
        return not self.points and not self.is_fallback

    @property
    def first(self) -> TrackPoint | None:
        return self.points[0] if self.points else None

    @property
    def last(self) -> TrackPoint | None:
        return self.points[-1] if self.points else None


@dataclass(frozen=True)
class TrackingSession:
    """The single active session of a dashboard client."""

    subject_id: str
    mode: TrackingMode
    started_at: datetime
    epoch: int


@dataclass(frozen=True)
class RenderState:
    """What the map should show."""

    center: tuple[float, float]
    points: tuple[TrackPoint, ...] = field(default_factory=tuple)
    mode: TrackingMode = TrackingMode.IDLE
    is_fallback: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.points
