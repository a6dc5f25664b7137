"""
Client configuration.

Values come from the environment (or a ``.env`` file) through
python-decouple, resolved once at process start into an immutable
``ClientConfig`` that is passed explicitly to every component.
"""
from dataclasses import dataclass
from typing import Any

from decouple import Csv, config

DEFAULT_CENTER: tuple[float, float] = (17.4010007, 78.5643879)

LIVE_STRATEGIES = ('poll', 'push')


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings for the dashboard and the mobile sampler.

    Attributes:
        backend_url: Base URL of the backend, without the ``/api`` prefix
        live_strategy: ``"poll"`` or ``"push"``
        poll_interval: Seconds between latest-sample requests in poll mode
        status_interval: Seconds between status map refreshes
        connect_timeout: Cap on the live feed's Connecting state, seconds
        request_timeout: Per-request HTTP timeout, seconds
        default_center: Map center when there is nothing to show
        live_trail_length: Accepted live samples kept as a trail (0 = pin only)
        max_track_points: Upper bound on historical polyline points
        fallback_point_count: Points in a synthetic fallback track
        fallback_jitter: Total jitter span in degrees around the reference
        sampler_min_interval: Time trigger for the sampler, seconds
        sampler_min_displacement_m: Distance trigger for the sampler, metres
        subject_prefix: Only status entries starting with this prefix are kept
    """

    backend_url: str = 'http://localhost:8080'
    live_strategy: str = 'poll'
    poll_interval: float = 30.0
    status_interval: float = 30.0
    connect_timeout: float = 5.0
    request_timeout: float = 10.0
    default_center: tuple[float, float] = DEFAULT_CENTER
    live_trail_length: int = 0
    max_track_points: int = 1000
    fallback_point_count: int = 5
    fallback_jitter: float = 0.01
    sampler_min_interval: float = 30.0
    sampler_min_displacement_m: float = 10.0
    subject_prefix: str = ''

    def __post_init__(self) -> None:
        if self.live_strategy not in LIVE_STRATEGIES:
            raise ValueError(
                f"Expected live strategy in {LIVE_STRATEGIES}, got '{self.live_strategy}'"
            )

    @property
    def api_url(self) -> str:
        return f"{self.backend_url.rstrip('/')}/api"

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientConfig":
        """Build a configuration from environment variables."""
        scheme = str(config('TRACKING_BACKEND_SCHEME', default='http'))
        host = str(config('TRACKING_BACKEND_HOST', default='localhost'))
        port = config('TRACKING_BACKEND_PORT', default=8080, cast=int)
        center = config('TRACKING_DEFAULT_CENTER', default='', cast=Csv(cast=float))

        values: dict[str, Any] = {
            'backend_url': f"{scheme}://{host}:{port}",
            'live_strategy': str(config('TRACKING_LIVE_STRATEGY', default='poll')),
            'poll_interval': config('TRACKING_POLL_INTERVAL', default=30.0, cast=float),
            'status_interval': config('TRACKING_STATUS_INTERVAL', default=30.0, cast=float),
            'connect_timeout': config('TRACKING_CONNECT_TIMEOUT', default=5.0, cast=float),
            'request_timeout': config('TRACKING_REQUEST_TIMEOUT', default=10.0, cast=float),
            'live_trail_length': config('TRACKING_LIVE_TRAIL_LENGTH', default=0, cast=int),
            'max_track_points': config('TRACKING_MAX_TRACK_POINTS', default=1000, cast=int),
            'sampler_min_interval': config('TRACKING_SAMPLER_MIN_INTERVAL', default=30.0, cast=float),
            'sampler_min_displacement_m': config(
                'TRACKING_SAMPLER_MIN_DISPLACEMENT', default=10.0, cast=float
            ),
            'subject_prefix': str(config('TRACKING_SUBJECT_PREFIX', default='')),
        }
        if len(center) == 2:
            values['default_center'] = (center[0], center[1])
        values.update(overrides)
        return cls(**values)
