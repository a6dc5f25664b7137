"""
Live position feed for the dashboard.

``LiveFeedController`` owns the single tracking session and runs one
strategy at a time: ``PollStrategy`` requests the latest sample on a
timer, ``PushStrategy`` follows the backend's per-subject event stream.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol

from .api import BackendClient
from .errors import BackendError, NetworkError, ValidationError
from .fallback import FallbackPolicy
from .models import ConnectionStatus, LocationSample, TrackingMode, TrackingSession

logger = logging.getLogger(__name__)


class LiveFeed(Protocol):
    def __aiter__(self) -> AsyncIterator[LocationSample]: ...

    async def aclose(self) -> None: ...


class LiveStrategy(ABC):
    """How live samples reach the controller."""

    name: str

    @abstractmethod
    async def connect(self, subject_id: str) -> LiveFeed:
        """
        Establish the feed for a subject.

        Returning means the feed is connected; failures raise ``BackendError``.
        """


def _decode_sample(data: dict | None, subject_id: str) -> LocationSample | None:
    if data is None:
        return None
    try:
        return LocationSample.from_payload(data, subject_id=subject_id)
    except (ValueError, TypeError) as e:
        logger.warning("Ignoring malformed latest sample for %s: %s", subject_id, e)
        return None


class PollFeed:
    def __init__(self, backend: BackendClient, subject_id: str, interval: float,
                 first: LocationSample | None) -> None:
        self.backend = backend
        self.subject_id = subject_id
        self.interval = interval
        self._first = first

    async def __aiter__(self) -> AsyncIterator[LocationSample]:
        if self._first is not None:
            yield self._first
        while True:
            await asyncio.sleep(self.interval)
            sample = _decode_sample(await self.backend.latest_location(self.subject_id), self.subject_id)
            if sample is not None:
                yield sample

    async def aclose(self) -> None:
        pass


class PollStrategy(LiveStrategy):
    """Request the latest sample every ``interval`` seconds."""

    name = 'poll'

    def __init__(self, backend: BackendClient, interval: float = 30.0) -> None:
        self.backend = backend
        self.interval = interval

    async def connect(self, subject_id: str) -> PollFeed:
        # An empty (204) first answer still counts as connected
        first = _decode_sample(await self.backend.latest_location(subject_id), subject_id)
        return PollFeed(self.backend, subject_id, self.interval, first)


class PushStrategy(LiveStrategy):
    """Subscribe to the backend's server-sent-event stream for the subject."""

    name = 'push'

    def __init__(self, backend: BackendClient) -> None:
        self.backend = backend

    async def connect(self, subject_id: str) -> LiveFeed:
        return await self.backend.open_event_stream(subject_id)


def make_strategy(name: str, backend: BackendClient, poll_interval: float = 30.0) -> LiveStrategy:
    """Build the strategy named by configuration."""
    if name == 'poll':
        return PollStrategy(backend, interval=poll_interval)
    if name == 'push':
        return PushStrategy(backend)
    raise ValueError(f"Expected live strategy 'poll' or 'push', got '{name}'")


class FeedState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    ERROR = "error"


_STATUS_FOR_STATE = {
    FeedState.IDLE: ConnectionStatus.DISCONNECTED,
    FeedState.CONNECTING: ConnectionStatus.CONNECTING,
    FeedState.ACTIVE: ConnectionStatus.CONNECTED,
    FeedState.ERROR: ConnectionStatus.ERROR,
}


class LiveFeedController:
    """
    State machine for the live session.

    Transitions are ``Idle -> Connecting -> Active -> Idle`` and
    ``Connecting|Active -> Error -> Idle``. Every session carries an epoch;
    results from an older epoch are discarded, as are samples that are not
    strictly newer than the displayed one.

    Args:
        strategy: Poll or push delivery
        fallback: Substitutes a demo sample when the feed fails
        connect_timeout: Seconds allowed in the Connecting state
        trail_length: Accepted samples kept as a trail (0 keeps only the pin)
        on_change: Called with the controller after every state or sample change
    """

    def __init__(
        self,
        strategy: LiveStrategy,
        fallback: FallbackPolicy | None = None,
        connect_timeout: float = 5.0,
        trail_length: int = 0,
        on_change: Callable[["LiveFeedController"], None] | None = None,
    ) -> None:
        self.strategy = strategy
        self.fallback = fallback
        self.connect_timeout = connect_timeout
        self.on_change = on_change
        self.session: TrackingSession | None = None
        self.latest_sample: LocationSample | None = None
        self.error: BackendError | None = None
        self.is_fallback = False
        self._trail: deque[LocationSample] | None = deque(maxlen=trail_length) if trail_length > 0 else None
        self._state = FeedState.IDLE
        self._epoch = 0
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return _STATUS_FOR_STATE[self._state]

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def live_trail(self) -> tuple[LocationSample, ...]:
        return tuple(self._trail) if self._trail is not None else ()

    def is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _set_state(self, state: FeedState) -> None:
        if state is self._state:
            return
        logger.info("Live feed %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _settle_idle(self) -> None:
        # Session changes notify even when the state was already idle
        if self._state is FeedState.IDLE:
            self._notify()
        else:
            self._set_state(FeedState.IDLE)

    def _teardown(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.latest_sample = None
        self.error = None
        self.is_fallback = False
        if self._trail is not None:
            self._trail.clear()

    @staticmethod
    def _require_subject(subject_id: str | None) -> str:
        if not subject_id or not subject_id.strip():
            raise ValidationError("no subject selected")
        return subject_id.strip()

    def start(self, subject_id: str) -> TrackingSession:
        """
        Open a live session for a subject, replacing any current session.

        Raises:
            ValidationError: If no subject is selected
        """
        subject_id = self._require_subject(subject_id)
        self._teardown()
        self._epoch += 1
        self.session = TrackingSession(
            subject_id=subject_id,
            mode=TrackingMode.LIVE,
            started_at=datetime.now(tz=UTC),
            epoch=self._epoch,
        )
        logger.info("Starting %s live feed for %s (epoch %d)", self.strategy.name, subject_id, self._epoch)
        self._set_state(FeedState.CONNECTING)
        self._task = asyncio.create_task(self._run(self._epoch, subject_id))
        return self.session

    def begin_historical(self, subject_id: str) -> TrackingSession:
        """
        Replace any live session with a historical one.

        Raises:
            ValidationError: If no subject is selected
        """
        subject_id = self._require_subject(subject_id)
        self._teardown()
        self._epoch += 1
        self.session = TrackingSession(
            subject_id=subject_id,
            mode=TrackingMode.HISTORICAL,
            started_at=datetime.now(tz=UTC),
            epoch=self._epoch,
        )
        self._settle_idle()
        return self.session

    def stop(self) -> None:
        """End the current session. Calling it again has no effect."""
        if self.session is None and self._task is None and self._state is FeedState.IDLE:
            return
        self._teardown()
        self._epoch += 1
        self.session = None
        logger.info("Live feed stopped")
        self._settle_idle()

    async def aclose(self) -> None:
        """Stop and wait for the feed task to unwind."""
        task = self._task
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _run(self, epoch: int, subject_id: str) -> None:
        feed: LiveFeed | None = None
        try:
            try:
                async with asyncio.timeout(self.connect_timeout):
                    feed = await self.strategy.connect(subject_id)
            except TimeoutError as e:
                raise NetworkError(
                    f"Live feed for {subject_id} did not connect within {self.connect_timeout}s"
                ) from e
            if not self.is_current(epoch):
                return
            self._set_state(FeedState.ACTIVE)
            async for sample in feed:
                self.apply_sample(epoch, sample)
            raise NetworkError(f"Live feed for {subject_id} closed by the backend")
        except BackendError as e:
            self._fail(epoch, subject_id, e)
        finally:
            if feed is not None:
                await feed.aclose()

    def _fail(self, epoch: int, subject_id: str, error: BackendError) -> None:
        if not self.is_current(epoch):
            return
        logger.warning("Live feed for %s failed: %s", subject_id, error)
        self.error = error
        self._set_state(FeedState.ERROR)
        if self.fallback is not None:
            self.is_fallback = True
            self._accept(self.fallback.live_sample(subject_id))

    def apply_sample(self, epoch: int, sample: LocationSample) -> bool:
        """
        Apply a delivered sample if it belongs to the current session and is newer.

        Returns:
            True if the displayed position changed
        """
        if not self.is_current(epoch) or self._state is not FeedState.ACTIVE:
            logger.debug("Discarding sample from stale epoch %d", epoch)
            return False
        if self.session is not None and sample.subject_id != self.session.subject_id:
            logger.debug("Discarding sample for %s in session of %s",
                          sample.subject_id, self.session.subject_id)
            return False
        if self.latest_sample is not None and sample.captured_at <= self.latest_sample.captured_at:
            logger.debug("Discarding out-of-order sample at %s", sample.captured_at.isoformat())
            return False
        self.is_fallback = False
        self._accept(sample)
        return True

    def _accept(self, sample: LocationSample) -> None:
        self.latest_sample = sample
        if self._trail is not None:
            self._trail.append(sample)
        self._notify()
