"""
Dashboard facade.

``TrackingDashboard`` combines the live feed, historical fetcher, status
monitor and fallback policy behind one object. Domain state (session,
samples, tracks) lives in the components; what only matters to the view
(validation message, fallback banner, notice) lives in ``ViewState``.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from .api import BackendClient
from .config import ClientConfig
from .errors import BackendError, ValidationError
from .fallback import FallbackPolicy
from .history import HistoricalTrackFetcher
from .live import LiveFeedController, make_strategy
from .models import ConnectionStatus, RenderState, SubjectStatus, Track, TrackingMode
from .render import render
from .status import SubjectStatusMonitor

logger = logging.getLogger(__name__)

DEMO_DATA_BANNER = "Using demo data - Backend not available"
DEMO_ROUTE_BANNER = "Demo mode: Showing simulated historical route"
NO_DATA_NOTICE = "No location data found for the selected time range"
NO_SUBJECT_MESSAGE = "Please select a surveyor first"


@dataclass(frozen=True)
class ViewState:
    """View-only state, kept apart from tracking state."""

    validation_message: str | None = None
    fallback_banner: str | None = None
    notice: str | None = None


class TrackingDashboard:
    """
    Operator dashboard driving one tracking session at a time.

    Args:
        config: Client configuration
        backend: Backend client; built from ``config`` when omitted
    """

    def __init__(self, config: ClientConfig, backend: BackendClient | None = None) -> None:
        self.config = config
        self.backend = backend or BackendClient(config)
        self.fallback = FallbackPolicy(
            reference=config.default_center,
            point_count=config.fallback_point_count,
            jitter=config.fallback_jitter,
        )
        self.live = LiveFeedController(
            make_strategy(config.live_strategy, self.backend, config.poll_interval),
            fallback=self.fallback,
            connect_timeout=config.connect_timeout,
            trail_length=config.live_trail_length,
            on_change=self._on_live_change,
        )
        self.history = HistoricalTrackFetcher(
            self.backend, fallback=self.fallback, max_points=config.max_track_points
        )
        self.status_monitor = SubjectStatusMonitor(
            self.backend,
            fallback=self.fallback,
            interval=config.status_interval,
            subject_prefix=config.subject_prefix,
        )
        self.view = ViewState()
        self.surveyors: list[dict[str, Any]] = []
        self.selected_subject: str | None = None
        self.track: Track | None = None
        self.system_config: dict[str, Any] = {}

    # View state

    def _validation(self, message: str) -> None:
        logger.info("Validation: %s", message)
        self.view = replace(self.view, validation_message=message)

    def _degraded(self, banner: str = DEMO_DATA_BANNER) -> None:
        self.view = replace(self.view, fallback_banner=banner)

    def _succeeded(self) -> None:
        if self.view.fallback_banner is not None:
            self.view = replace(self.view, fallback_banner=None)

    def dismiss_message(self) -> None:
        """Clear the validation message and notice; the fallback banner stays."""
        self.view = replace(self.view, validation_message=None, notice=None)

    def _on_live_change(self, controller: LiveFeedController) -> None:
        if controller.is_fallback:
            self._degraded()
        elif controller.status is ConnectionStatus.CONNECTED and controller.latest_sample is not None:
            self._succeeded()

    # Surveyors

    async def load_surveyors(self, city: str | None = None, project: str | None = None) -> list[dict[str, Any]]:
        """Load the surveyor list, falling back to the demo roster."""
        try:
            surveyors = await self.backend.list_surveyors(city=city, project=project)
        except BackendError as e:
            logger.warning("Loading surveyors failed, using demo roster: %s", e)
            self.surveyors = self.fallback.surveyors()
            self._degraded()
        else:
            self.surveyors = [s for s in surveyors if 'admin' not in str(s.get('id', '')).lower()]
            self._succeeded()
        await self.refresh_statuses()
        return self.surveyors

    async def refresh_statuses(self) -> dict[str, SubjectStatus]:
        known = [str(s['id']) for s in self.surveyors if s.get('id')]
        statuses = await self.status_monitor.refresh(known)
        if self.status_monitor.is_fallback:
            self._degraded()
        return statuses

    async def save_surveyor(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Create or update a surveyor.

        Raises:
            ValidationError: If required fields are missing
            BackendError: If the backend refuses or is unreachable
        """
        missing = [f for f in ('id', 'name') if not str(data.get(f) or '').strip()]
        if missing:
            self._validation(f"Missing required fields: {', '.join(missing)}")
            raise ValidationError(self.view.validation_message)
        saved = await self.backend.save_surveyor(data)
        self._succeeded()
        await self.load_surveyors()
        return saved

    async def delete_surveyor(self, subject_id: str) -> None:
        """Delete a surveyor, ending its session if it was selected."""
        await self.backend.delete_surveyor(subject_id)
        if self.selected_subject == subject_id:
            self.select_subject(None)
        await self.load_surveyors()

    def select_subject(self, subject_id: str | None) -> None:
        """Change the selected subject; any running session ends."""
        if subject_id == self.selected_subject:
            return
        self.live.stop()
        self.track = None
        self.selected_subject = subject_id or None
        self.view = replace(self.view, validation_message=None, notice=None)

    # Tracking

    def toggle_live(self) -> bool:
        """
        Start live tracking for the selected subject, or stop it if running.

        Returns:
            True if live tracking is now running
        """
        if self.live.session is not None and self.live.session.mode is TrackingMode.LIVE:
            self.live.stop()
            return False
        try:
            self.live.start(self.selected_subject or '')
        except ValidationError:
            self._validation(NO_SUBJECT_MESSAGE)
            return False
        self.track = None
        self.view = replace(self.view, validation_message=None, notice=None)
        return True

    async def show_history(self, start: datetime | None, end: datetime | None) -> Track | None:
        """Fetch and display a historical track; returns None when input is invalid."""
        if not self.selected_subject:
            self._validation(NO_SUBJECT_MESSAGE)
            return None
        session = self.live.begin_historical(self.selected_subject)
        self.track = None
        try:
            track = await self.history.fetch(self.selected_subject, start, end)
        except ValidationError as e:
            self._validation(str(e))
            return None
        if not self.live.is_current(session.epoch):
            logger.debug("Discarding track for superseded session %d", session.epoch)
            return None

        self.track = track
        if track.is_fallback:
            banner = DEMO_ROUTE_BANNER
            if track.fallback_reason:
                banner = f"{banner} ({track.fallback_reason})"
            self._degraded(banner)
            notice = None
        else:
            self._succeeded()
            notice = NO_DATA_NOTICE if track.no_data_in_range else None
        self.view = replace(self.view, validation_message=None, notice=notice)
        return track

    def render_state(self) -> RenderState:
        session = self.live.session
        historical = session is not None and session.mode is TrackingMode.HISTORICAL
        track = self.track if historical else None
        return render(
            self.live.session,
            self.live.latest_sample,
            self.live.live_trail,
            track,
            default_center=self.config.default_center,
            fallback=self.live.is_fallback,
        )

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.live.status

    # Configuration

    async def load_system_config(self) -> dict[str, Any]:
        """Fetch system configuration; an empty mapping when unreachable."""
        try:
            self.system_config = await self.backend.system_config()
        except BackendError as e:
            logger.warning("Loading system configuration failed: %s", e)
            self._degraded()
        else:
            self._succeeded()
        return self.system_config

    async def aclose(self) -> None:
        await self.live.aclose()
        await self.status_monitor.stop()
        await self.backend.aclose()
