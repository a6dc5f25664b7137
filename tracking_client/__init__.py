"""Client-side core of the surveyor tracking system."""

from .api import BackendClient
from .config import ClientConfig
from .dashboard import TrackingDashboard, ViewState
from .errors import (
    BackendError,
    NetworkError,
    PermissionDenied,
    ServerRejected,
    TrackingError,
    ValidationError,
)
from .fallback import FallbackPolicy
from .history import HistoricalTrackFetcher
from .live import LiveFeedController, PollStrategy, PushStrategy
from .models import (
    ConnectionStatus,
    LocationSample,
    RenderState,
    SubjectStatus,
    Track,
    TrackingMode,
    TrackingSession,
    TrackPoint,
)
from .render import render
from .sampler import LocationSampler, SamplerSettings
from .service import TrackingService
from .status import SubjectStatusMonitor
from .uplink import SampleUplink

__all__ = [
    'BackendClient',
    'BackendError',
    'ClientConfig',
    'ConnectionStatus',
    'FallbackPolicy',
    'HistoricalTrackFetcher',
    'LiveFeedController',
    'LocationSample',
    'LocationSampler',
    'NetworkError',
    'PermissionDenied',
    'PollStrategy',
    'PushStrategy',
    'RenderState',
    'SampleUplink',
    'SamplerSettings',
    'ServerRejected',
    'SubjectStatus',
    'SubjectStatusMonitor',
    'Track',
    'TrackPoint',
    'TrackingDashboard',
    'TrackingError',
    'TrackingMode',
    'TrackingService',
    'TrackingSession',
    'ValidationError',
    'ViewState',
    'render',
]
