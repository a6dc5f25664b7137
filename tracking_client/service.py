"""Background tracking service wiring a sampler to an uplink."""
import asyncio
import logging

from .errors import PermissionDenied, ValidationError
from .sampler import LocationSampler
from .uplink import SampleUplink

logger = logging.getLogger(__name__)


class TrackingService:
    """
    Runs a ``LocationSampler`` in the background and submits every sample.

    The service stops itself when the sampler reports ``PermissionDenied``;
    the failure is kept in ``failure`` for the caller to inspect.
    """

    def __init__(self, sampler: LocationSampler, uplink: SampleUplink) -> None:
        self.sampler = sampler
        self.uplink = uplink
        self.failure: PermissionDenied | None = None
        self._task: asyncio.Task | None = None

    @property
    def subject_id(self) -> str:
        return self.sampler.subject_id

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """
        Start sampling in a background task.

        Raises:
            ValidationError: If the sampler has no subject id
        """
        if not (self.subject_id or '').strip():
            raise ValidationError("no subject selected")
        if self.running:
            logger.debug("Tracking service for %s already running", self.subject_id)
            return
        self.failure = None
        self._task = asyncio.create_task(self._run())
        logger.info("Tracking service started for %s", self.subject_id)

    async def _run(self) -> None:
        try:
            async for sample in self.sampler.samples():
                self.uplink.submit(sample)
        except PermissionDenied as e:
            self.failure = e
            logger.error("Location permission unavailable for %s, stopping: %s", self.subject_id, e)

    async def wait(self) -> None:
        """Wait until sampling ends on its own (provider exhausted or permission lost)."""
        if self._task is not None:
            await asyncio.shield(self._task)
        await self.uplink.drain()

    async def stop(self) -> None:
        """Stop sampling, release the provider and drain pending deliveries."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            self.sampler.stop()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Tracking service stopped for %s", self.subject_id)
        await self.uplink.drain()
