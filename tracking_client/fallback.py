"""
Deterministic demo data used when the backend is unreachable.

Every result produced here is flagged so the view can show a
"demo/fallback data" banner instead of presenting it as authoritative.
"""
import logging
import random
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from .config import DEFAULT_CENTER
from .models import LocationSample, SubjectStatus, Track, TrackPoint

logger = logging.getLogger(__name__)

DEMO_SURVEYORS: tuple[dict[str, str], ...] = (
    {'id': 'SUR009', 'name': 'Kiran', 'city': 'Hyderabad', 'projectName': 'PTMS', 'username': 'kiran_sur'},
    {'id': 'SUR010', 'name': 'Rajesh Kumar', 'city': 'Mumbai', 'projectName': 'Survey', 'username': 'rajesh_kumar'},
    {'id': 'SUR011', 'name': 'Priya Sharma', 'city': 'Delhi', 'projectName': 'Mapping', 'username': 'priya_sharma'},
)

DEMO_ONLINE_SUBJECT = 'SUR009'


class FallbackPolicy:
    """
    Produces synthetic substitutes for failed backend calls.

    Output depends only on the arguments, so the same failed request
    always renders the same demo route.

    Args:
        reference: Coordinate the synthetic points scatter around
        point_count: Number of points in a synthetic track
        jitter: Total span in degrees of the random offset (half each side)
    """

    def __init__(
        self,
        reference: tuple[float, float] = DEFAULT_CENTER,
        point_count: int = 5,
        jitter: float = 0.01,
    ) -> None:
        if point_count < 1:
            raise ValueError(f"Expected at least one fallback point, got {point_count}")
        self.reference = reference
        self.point_count = point_count
        self.jitter = jitter

    def _offset(self, rng: random.Random) -> tuple[float, float]:
        lat = self.reference[0] + (rng.random() - 0.5) * self.jitter
        lng = self.reference[1] + (rng.random() - 0.5) * self.jitter
        return lat, lng

    def historical_track(self, subject_id: str, start: datetime, end: datetime) -> Track:
        """Synthesize a track interpolated between the requested bounds."""
        rng = random.Random(f"{subject_id}|{start.isoformat()}|{end.isoformat()}")
        span = end - start
        steps = max(self.point_count - 1, 1)
        points = []
        for i in range(self.point_count):
            lat, lng = self._offset(rng)
            points.append(TrackPoint(lat=lat, lng=lng, timestamp=start + span * (i / steps)))

        logger.info("Substituting %d demo points for %s", len(points), subject_id)
        return Track(
            subject_id=subject_id,
            start=start,
            end=end,
            points=tuple(points),
            is_fallback=True,
            raw_count=0,
        )

    def live_sample(self, subject_id: str, now: datetime | None = None) -> LocationSample:
        """Synthesize a single live position."""
        captured_at = now or datetime.now(tz=UTC)
        rng = random.Random(f"{subject_id}|live")
        lat, lng = self._offset(rng)
        return LocationSample(subject_id=subject_id, latitude=lat, longitude=lng, captured_at=captured_at)

    def surveyors(
        self, cities: Sequence[str] = (), projects: Sequence[str] = ()
    ) -> list[dict[str, Any]]:
        """Demo roster, using configured dropdown values where available."""
        roster = []
        for i, surveyor in enumerate(DEMO_SURVEYORS):
            entry = dict(surveyor)
            if i < len(cities):
                entry['city'] = cities[i]
            if i < len(projects):
                entry['projectName'] = projects[i]
            roster.append(entry)
        return roster

    def statuses(self, subject_ids: Iterable[str]) -> dict[str, SubjectStatus]:
        """Demo status map: one known subject online, the rest offline."""
        return {
            sid: SubjectStatus.ONLINE if sid == DEMO_ONLINE_SUBJECT else SubjectStatus.OFFLINE
            for sid in subject_ids
        }
