"""
Tests for the background tracking service.
"""
import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from hamcrest import assert_that, equal_to, instance_of, none

from tracking_client.errors import PermissionDenied, ValidationError
from tracking_client.sampler import (Accuracy, LocationSampler, RawFix,
                                     ReplayPositionProvider)
from tracking_client.service import TrackingService
from tracking_client.uplink import SampleUplink

T0 = datetime(2025, 7, 1, 10, 0, tzinfo=UTC)


class DeniedProvider:
    async def start(self, accuracy: Accuracy) -> None:
        raise PermissionDenied("Location permission denied")

    async def next_fix(self) -> RawFix | None:
        return None

    async def stop(self) -> None:
        pass


def _fixes(count: int) -> list[RawFix]:
    return [RawFix(17.4, 78.5, T0 + timedelta(seconds=30 * i)) for i in range(count)]


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(201, json={})


@pytest.mark.asyncio
class TestTrackingService:
    """Tests for TrackingService."""

    async def test_delivers_every_sample(self, make_backend) -> None:
        async with make_backend(_ok) as backend:
            uplink = SampleUplink(backend)
            service = TrackingService(LocationSampler('SUR009', ReplayPositionProvider(_fixes(3))), uplink)
            service.start()
            await service.wait()

        assert_that(uplink.sent, equal_to(3))
        assert_that(service.running, equal_to(False))
        assert_that(service.failure, none())

    async def test_blank_subject_is_rejected(self, make_backend) -> None:
        async with make_backend(_ok) as backend:
            service = TrackingService(LocationSampler('  ', ReplayPositionProvider([])), SampleUplink(backend))

            with pytest.raises(ValidationError, match='no subject selected'):
                service.start()

        assert_that(service.running, equal_to(False))

    async def test_permission_denied_stops_service(self, make_backend) -> None:
        async with make_backend(_ok) as backend:
            uplink = SampleUplink(backend)
            service = TrackingService(LocationSampler('SUR009', DeniedProvider()), uplink)
            service.start()
            await service.wait()

        assert_that(service.failure, instance_of(PermissionDenied))
        assert_that(uplink.sent, equal_to(0))

    async def test_stop_releases_provider(self, make_backend) -> None:
        provider = ReplayPositionProvider(_fixes(100), pace=0.05)
        async with make_backend(_ok) as backend:
            service = TrackingService(LocationSampler('SUR009', provider), SampleUplink(backend))
            service.start()
            await asyncio.sleep(0.01)
            assert_that(service.running, equal_to(True))

            await service.stop()
            await service.stop()

        assert_that(service.running, equal_to(False))
        assert_that(provider.stopped, equal_to(True))

    async def test_start_twice_keeps_one_task(self, make_backend) -> None:
        provider = ReplayPositionProvider(_fixes(100), pace=0.05)
        async with make_backend(_ok) as backend:
            service = TrackingService(LocationSampler('SUR009', provider), SampleUplink(backend))
            service.start()
            task = service._task
            service.start()

            assert_that(service._task is task, equal_to(True))
            await service.stop()
