"""Reduction of session data to what the map shows."""
from collections.abc import Sequence

from .models import LocationSample, RenderState, Track, TrackingMode, TrackingSession


def render(
    session: TrackingSession | None,
    live_sample: LocationSample | None,
    live_trail: Sequence[LocationSample],
    historical_track: Track | None,
    *,
    default_center: tuple[float, float],
    fallback: bool = False,
) -> RenderState:
    """
    Compute the render state for the current session.

    A live sample wins over a historical track. The center is the live
    sample, else the first track point, else ``default_center``. An empty
    result is a placeholder, not an error.
    """
    mode = session.mode if session is not None else TrackingMode.IDLE

    if live_sample is not None:
        trail = tuple(s.to_point() for s in live_trail) or (live_sample.to_point(),)
        return RenderState(
            center=(live_sample.latitude, live_sample.longitude),
            points=trail,
            mode=mode,
            is_fallback=fallback,
        )

    if historical_track is not None and historical_track.points:
        first = historical_track.points[0]
        return RenderState(
            center=(first.lat, first.lng),
            points=historical_track.points,
            mode=mode,
            is_fallback=fallback or historical_track.is_fallback,
        )

    return RenderState(center=default_center, mode=mode, is_fallback=fallback)
