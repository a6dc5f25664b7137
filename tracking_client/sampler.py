"""
Position sampling for the mobile side.

A ``PositionProvider`` delivers raw fixes; ``LocationSampler`` turns them
into ``LocationSample`` values, emitting one whenever the time or the
distance threshold has been crossed since the last emitted sample.
"""
import asyncio
import csv
import json
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Protocol

from .errors import PermissionDenied
from .geo import haversine_m
from .models import LocationSample, parse_timestamp

logger = logging.getLogger(__name__)


class Accuracy(Enum):
    """Requested positioning accuracy, mapped to a location provider."""

    HIGH = "gps"
    BALANCED = "network"
    LOW = "passive"


@dataclass(frozen=True)
class RawFix:
    """A position as reported by the device, before sampling rules apply."""

    latitude: float
    longitude: float
    time: datetime
    accuracy_m: float | None = None


@dataclass(frozen=True)
class SamplerSettings:
    """Emission thresholds; a fix is emitted when either one is crossed."""

    min_interval: float = 30.0
    min_displacement_m: float = 10.0
    accuracy: Accuracy = Accuracy.HIGH


class PositionProvider(Protocol):
    async def start(self, accuracy: Accuracy) -> None: ...

    async def next_fix(self) -> RawFix | None: ...

    async def stop(self) -> None: ...


class LocationSampler:
    """
    Emits samples for one subject from a position provider.

    Args:
        subject_id: Identifier stamped on every sample
        provider: Source of raw device fixes
        settings: Time and distance thresholds
    """

    def __init__(
        self,
        subject_id: str,
        provider: PositionProvider,
        settings: SamplerSettings | None = None,
    ) -> None:
        self.subject_id = subject_id
        self.provider = provider
        self.settings = settings or SamplerSettings()
        self._stopping = False

    def _should_emit(self, fix: RawFix, last: LocationSample | None) -> bool:
        if last is None:
            return True
        elapsed = (fix.time - last.captured_at).total_seconds()
        if elapsed >= self.settings.min_interval:
            return True
        moved = haversine_m(last.latitude, last.longitude, fix.latitude, fix.longitude)
        return moved >= self.settings.min_displacement_m

    async def samples(self) -> AsyncIterator[LocationSample]:
        """
        Yield samples until stopped or the provider is exhausted.

        Raises:
            PermissionDenied: If the provider refuses to start
        """
        self._stopping = False
        await self.provider.start(self.settings.accuracy)
        logger.info("Sampling started for %s (accuracy %s)",
                    self.subject_id, self.settings.accuracy.name)
        last: LocationSample | None = None
        try:
            while not self._stopping:
                fix = await self.provider.next_fix()
                if fix is None:
                    logger.info("Position provider exhausted for %s", self.subject_id)
                    break
                if not self._should_emit(fix, last):
                    continue
                try:
                    sample = LocationSample(
                        subject_id=self.subject_id,
                        latitude=fix.latitude,
                        longitude=fix.longitude,
                        captured_at=fix.time,
                    )
                except ValueError as e:
                    logger.warning("Discarding invalid fix for %s: %s", self.subject_id, e)
                    continue
                last = sample
                yield sample
        finally:
            await self.provider.stop()
            logger.info("Sampling stopped for %s", self.subject_id)

    def stop(self) -> None:
        """Ask the running ``samples()`` iteration to finish after the current fix."""
        self._stopping = True


class ReplayPositionProvider:
    """
    Replays a fixed sequence of fixes.

    Args:
        fixes: Fixes to deliver, in order
        pace: Seconds to wait between fixes (0 delivers immediately)
    """

    def __init__(self, fixes: Iterable[RawFix], pace: float = 0.0) -> None:
        self._fixes = list(fixes)
        self.pace = pace
        self._position = 0
        self.started = False
        self.stopped = False

    @classmethod
    def from_csv(cls, path: str | Path, pace: float = 0.0) -> "ReplayPositionProvider":
        """Load fixes from a CSV file with latitude, longitude and timestamp columns."""
        fixes = []
        with open(path, newline='') as f:
            for row in csv.DictReader(f):
                fixes.append(RawFix(
                    latitude=float(row['latitude']),
                    longitude=float(row['longitude']),
                    time=parse_timestamp(row['timestamp']),
                ))
        return cls(fixes, pace=pace)

    async def start(self, accuracy: Accuracy) -> None:
        self._position = 0
        self.started = True
        self.stopped = False

    async def next_fix(self) -> RawFix | None:
        if self._position >= len(self._fixes):
            return None
        if self.pace and self._position:
            await asyncio.sleep(self.pace)
        fix = self._fixes[self._position]
        self._position += 1
        return fix

    async def stop(self) -> None:
        self.stopped = True


class TermuxPositionProvider:
    """
    Reads fixes on an Android host through the Termux:API ``termux-location`` command.

    Each ``next_fix()`` runs one request; ``interval`` seconds are waited
    between requests.
    """

    def __init__(self, interval: float = 1.0, command: str = 'termux-location', timeout: float = 30.0) -> None:
        self.interval = interval
        self.command = command
        self.timeout = timeout
        self._provider = Accuracy.HIGH.value
        self._first = True

    async def start(self, accuracy: Accuracy) -> None:
        self._provider = accuracy.value
        self._first = True
        # Fail fast when the command or the permission is missing
        await self._request()

    async def _request(self) -> RawFix:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.command, '-p', self._provider, '-r', 'once',
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise PermissionDenied(f"Location command '{self.command}' is not available") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise PermissionDenied(
                f"Location command '{self.command}' gave no fix within {self.timeout}s"
            ) from e
        message = (stderr or b'').decode('utf-8', errors='replace').strip()
        if 'permission' in message.lower():
            raise PermissionDenied(f"Location permission denied: {message}")
        if proc.returncode != 0:
            raise PermissionDenied(f"Location command failed with code {proc.returncode}: {message}")

        try:
            data = json.loads(stdout.decode('utf-8'))
        except ValueError as e:
            raise PermissionDenied(f"Location command returned no fix: {e}") from e
        if 'latitude' not in data or 'longitude' not in data:
            raise PermissionDenied(f"Location command returned no fix: {data}")

        return RawFix(
            latitude=float(data['latitude']),
            longitude=float(data['longitude']),
            time=datetime.now(tz=UTC),
            accuracy_m=data.get('accuracy'),
        )

    async def next_fix(self) -> RawFix | None:
        if not self._first:
            await asyncio.sleep(self.interval)
        self._first = False
        return await self._request()

    async def stop(self) -> None:
        logger.debug("Termux position provider stopped")
