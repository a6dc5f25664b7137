"""Periodic Online/Offline status of known subjects."""
import asyncio
import logging
from collections.abc import Iterable

from .api import BackendClient
from .errors import BackendError
from .fallback import FallbackPolicy
from .models import SubjectStatus

logger = logging.getLogger(__name__)


def is_admin_id(subject_id: str) -> bool:
    return 'admin' in subject_id.lower()


class SubjectStatusMonitor:
    """
    Keeps a status map fresh, independently of any tracking session.

    Args:
        backend: Backend client
        fallback: Supplies demo statuses when the backend is unreachable
        interval: Seconds between refreshes in the background loop
        subject_prefix: Only ids starting with this prefix are kept
    """

    def __init__(
        self,
        backend: BackendClient,
        fallback: FallbackPolicy | None = None,
        interval: float = 30.0,
        subject_prefix: str = '',
    ) -> None:
        self.backend = backend
        self.fallback = fallback
        self.interval = interval
        self.subject_prefix = subject_prefix
        self.statuses: dict[str, SubjectStatus] = {}
        self.is_fallback = False
        self.known_subjects: list[str] = []
        self._task: asyncio.Task | None = None

    def _keep(self, subject_id: str) -> bool:
        return subject_id.startswith(self.subject_prefix) and not is_admin_id(subject_id)

    async def refresh(self, known_subjects: Iterable[str] | None = None) -> dict[str, SubjectStatus]:
        """
        Fetch the status map once.

        Args:
            known_subjects: Ids to report in the fallback map when the
                backend is unreachable

        Raises:
            BackendError: If the backend fails and no fallback policy is set
        """
        if known_subjects is not None:
            self.known_subjects = list(known_subjects)
        try:
            raw = await self.backend.surveyor_statuses()
        except BackendError as e:
            if self.fallback is None:
                raise
            logger.warning("Status refresh failed, using demo statuses: %s", e)
            self.statuses = self.fallback.statuses(s for s in self.known_subjects if self._keep(s))
            self.is_fallback = True
            return self.statuses

        self.statuses = {
            sid: SubjectStatus.parse(value) for sid, value in raw.items() if self._keep(sid)
        }
        self.is_fallback = False
        logger.debug("Status map refreshed: %d subjects", len(self.statuses))
        return self.statuses

    async def _loop(self) -> None:
        while True:
            try:
                await self.refresh()
            except BackendError as e:
                logger.warning("Status refresh failed: %s", e)
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
