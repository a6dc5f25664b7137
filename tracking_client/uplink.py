"""
Delivery of samples to the backend ingest endpoint.

Delivery is fire-and-forget relative to sampling: a failed sample is
logged, counted and dropped.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .api import BackendClient
from .errors import NetworkError, ServerRejected
from .models import LocationSample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ack:
    """Acknowledgement returned by the ingest endpoint."""

    subject_id: str
    body: dict[str, Any]


class SampleUplink:
    """
    Posts samples to ``POST /api/location``.

    Attributes:
        sent: Number of samples the backend accepted
        dropped: Number of samples lost to a delivery failure
    """

    def __init__(self, backend: BackendClient) -> None:
        self.backend = backend
        self.sent = 0
        self.dropped = 0
        self._pending: set[asyncio.Task] = set()

    async def send(self, sample: LocationSample) -> Ack:
        """
        Deliver one sample and wait for the acknowledgement.

        Raises:
            NetworkError: If the backend could not be reached
            ServerRejected: If the backend answered with a non-2xx status
        """
        body = await self.backend.post_location(sample.to_payload())
        self.sent += 1
        return Ack(subject_id=sample.subject_id, body=body)

    def submit(self, sample: LocationSample) -> None:
        """Schedule delivery of a sample without waiting for it."""
        task = asyncio.create_task(self._deliver(sample))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, sample: LocationSample) -> None:
        try:
            await self.send(sample)
        except NetworkError as e:
            self.dropped += 1
            logger.warning("Dropping sample for %s at %s: %s",
                           sample.subject_id, sample.captured_at.isoformat(), e)
        except ServerRejected as e:
            self.dropped += 1
            logger.error("Backend rejected sample for %s (HTTP %d): %s",
                         sample.subject_id, e.status_code, e.body[:200])

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every submitted delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
