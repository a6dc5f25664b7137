"""
Tests for the mobile location sampler and its position providers.
"""
import asyncio
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from hamcrest import assert_that, contains_exactly, empty, equal_to, has_length

from tracking_client.errors import PermissionDenied
from tracking_client.sampler import (Accuracy, LocationSampler, RawFix,
                                     ReplayPositionProvider, SamplerSettings,
                                     TermuxPositionProvider)

T0 = datetime(2025, 7, 1, 10, 0, tzinfo=UTC)

# Roughly 11 m per 0.0001 degree of latitude
STEP = 0.0001


def _fix(seconds: float, lat: float = 17.4, lon: float = 78.5) -> RawFix:
    return RawFix(latitude=lat, longitude=lon, time=T0 + timedelta(seconds=seconds))


async def _collect(sampler: LocationSampler) -> list:
    return [sample async for sample in sampler.samples()]


class DeniedProvider:
    def __init__(self) -> None:
        self.stopped = False

    async def start(self, accuracy: Accuracy) -> None:
        raise PermissionDenied("Location permission denied")

    async def next_fix(self) -> RawFix | None:
        raise AssertionError("next_fix called without permission")

    async def stop(self) -> None:
        self.stopped = True


@pytest.mark.asyncio
class TestLocationSampler:
    """Tests for the time/distance emission rules."""

    async def test_first_fix_is_always_emitted(self) -> None:
        provider = ReplayPositionProvider([_fix(0)])

        samples = await _collect(LocationSampler('SUR009', provider))

        assert_that(samples, has_length(1))
        assert_that(samples[0].subject_id, equal_to('SUR009'))
        assert_that(samples[0].captured_at, equal_to(T0))

    async def test_stationary_device_emits_on_interval(self) -> None:
        fixes = [_fix(s) for s in (0, 10, 20, 30, 40, 59, 60)]
        sampler = LocationSampler('SUR009', ReplayPositionProvider(fixes), SamplerSettings(min_interval=30))

        samples = await _collect(sampler)

        assert_that([s.captured_at for s in samples],
                    contains_exactly(T0, T0 + timedelta(seconds=30), T0 + timedelta(seconds=60)))

    async def test_moving_device_emits_on_displacement(self) -> None:
        fixes = [_fix(0), _fix(1, lat=17.4 + STEP / 2), _fix(2, lat=17.4 + STEP), _fix(3, lat=17.4 + STEP)]
        sampler = LocationSampler(
            'SUR009', ReplayPositionProvider(fixes),
            SamplerSettings(min_interval=300, min_displacement_m=10),
        )

        samples = await _collect(sampler)

        assert_that([s.latitude for s in samples], contains_exactly(17.4, 17.4 + STEP))

    async def test_invalid_fix_is_skipped(self) -> None:
        fixes = [_fix(0, lat=95.0), _fix(1)]

        samples = await _collect(LocationSampler('SUR009', ReplayPositionProvider(fixes)))

        assert_that([s.latitude for s in samples], contains_exactly(17.4))

    async def test_permission_denied_emits_nothing(self) -> None:
        sampler = LocationSampler('SUR009', DeniedProvider())

        with pytest.raises(PermissionDenied):
            await _collect(sampler)

    async def test_provider_stopped_when_exhausted(self) -> None:
        provider = ReplayPositionProvider([_fix(0)])

        await _collect(LocationSampler('SUR009', provider))

        assert_that(provider.started, equal_to(True))
        assert_that(provider.stopped, equal_to(True))

    async def test_stop_ends_iteration(self) -> None:
        provider = ReplayPositionProvider([_fix(s) for s in range(0, 600, 30)])
        sampler = LocationSampler('SUR009', provider)
        received = []

        async for sample in sampler.samples():
            received.append(sample)
            if len(received) == 2:
                sampler.stop()

        assert_that(received, has_length(2))
        assert_that(provider.stopped, equal_to(True))

    async def test_requested_accuracy_reaches_provider(self) -> None:
        provider = MagicMock()
        provider.start = AsyncMock()
        provider.next_fix = AsyncMock(return_value=None)
        provider.stop = AsyncMock()

        await _collect(LocationSampler('SUR009', provider, SamplerSettings(accuracy=Accuracy.LOW)))

        provider.start.assert_awaited_once_with(Accuracy.LOW)
        provider.stop.assert_awaited_once()


class TestReplayPositionProvider:
    """Tests for CSV replay."""

    @pytest.mark.asyncio
    async def test_from_csv(self, tmp_path: Path) -> None:
        path = tmp_path / 'walk.csv'
        path.write_text(
            'latitude,longitude,timestamp\n'
            '17.4,78.5,2025-07-01T10:00:00Z\n'
            '17.5,78.6,2025-07-01T10:01:00Z\n'
        )
        provider = ReplayPositionProvider.from_csv(path)

        await provider.start(Accuracy.HIGH)
        first = await provider.next_fix()
        second = await provider.next_fix()
        third = await provider.next_fix()

        assert_that(first, equal_to(RawFix(17.4, 78.5, T0)))
        assert_that(second.time, equal_to(T0 + timedelta(minutes=1)))
        assert_that(third, equal_to(None))

    @pytest.mark.asyncio
    async def test_empty_replay(self) -> None:
        provider = ReplayPositionProvider([])
        sampler = LocationSampler('SUR009', provider)

        assert_that(await _collect(sampler), empty())


def _process(returncode: int, stdout: bytes = b'', stderr: bytes = b'') -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    return proc


@pytest.mark.asyncio
class TestTermuxPositionProvider:
    """Tests for the termux-location provider, with the subprocess mocked."""

    async def test_reads_fix(self) -> None:
        output = json.dumps({'latitude': 17.4, 'longitude': 78.5, 'accuracy': 8.0}).encode()
        with patch('asyncio.create_subprocess_exec', AsyncMock(return_value=_process(0, output))) as spawn:
            provider = TermuxPositionProvider(interval=0)
            await provider.start(Accuracy.BALANCED)
            fix = await provider.next_fix()

        assert_that(fix.latitude, equal_to(17.4))
        assert_that(fix.accuracy_m, equal_to(8.0))
        assert_that(spawn.call_args.args[:5],
                    equal_to(('termux-location', '-p', 'network', '-r', 'once')))

    async def test_missing_command_is_permission_denied(self) -> None:
        with patch('asyncio.create_subprocess_exec', AsyncMock(side_effect=FileNotFoundError)):
            with pytest.raises(PermissionDenied):
                await TermuxPositionProvider().start(Accuracy.HIGH)

    async def test_permission_message_is_permission_denied(self) -> None:
        proc = _process(0, b'', b'Permission denied for location')
        with patch('asyncio.create_subprocess_exec', AsyncMock(return_value=proc)):
            with pytest.raises(PermissionDenied, match='permission denied'):
                await TermuxPositionProvider().start(Accuracy.HIGH)

    async def test_failed_command_is_permission_denied(self) -> None:
        with patch('asyncio.create_subprocess_exec', AsyncMock(return_value=_process(1, b'', b'boom'))):
            with pytest.raises(PermissionDenied, match='code 1'):
                await TermuxPositionProvider().start(Accuracy.HIGH)

    async def test_output_without_fix_is_permission_denied(self) -> None:
        with patch('asyncio.create_subprocess_exec', AsyncMock(return_value=_process(0, b'{}'))):
            with pytest.raises(PermissionDenied):
                await TermuxPositionProvider().start(Accuracy.HIGH)

    async def test_slow_command_is_killed_and_denied(self) -> None:
        async def hang() -> tuple[bytes, bytes]:
            await asyncio.sleep(10)
            return b'', b''

        proc = _process(0)
        proc.communicate = AsyncMock(side_effect=hang)
        proc.kill = MagicMock()
        proc.wait = AsyncMock(return_value=-9)
        with patch('asyncio.create_subprocess_exec', AsyncMock(return_value=proc)):
            with pytest.raises(PermissionDenied, match='no fix within'):
                await TermuxPositionProvider(timeout=0.05).start(Accuracy.HIGH)

        proc.kill.assert_called_once_with()
        proc.wait.assert_awaited_once()
