"""
Tests for the subject status monitor.
"""
import asyncio

import httpx
import pytest
from hamcrest import assert_that, equal_to

from tracking_client.errors import NetworkError
from tracking_client.fallback import FallbackPolicy
from tracking_client.models import SubjectStatus
from tracking_client.status import SubjectStatusMonitor, is_admin_id


def _refused(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError('refused', request=request)


def test_is_admin_id() -> None:
    assert_that(is_admin_id('ADMIN01'), equal_to(True))
    assert_that(is_admin_id('SUR009'), equal_to(False))


@pytest.mark.asyncio
class TestSubjectStatusMonitor:
    """Tests for SubjectStatusMonitor."""

    async def test_refresh_parses_and_filters(self, make_backend) -> None:
        body = {'SUR009': 'Online', 'SUR010': 'Offline', 'admin': 'Online', 'TMP1': True}
        async with make_backend(lambda request: httpx.Response(200, json=body)) as backend:
            monitor = SubjectStatusMonitor(backend, subject_prefix='SUR')
            statuses = await monitor.refresh()

        assert_that(statuses, equal_to({'SUR009': SubjectStatus.ONLINE, 'SUR010': SubjectStatus.OFFLINE}))
        assert_that(monitor.is_fallback, equal_to(False))

    async def test_failure_uses_fallback_for_known_subjects(self, make_backend) -> None:
        async with make_backend(_refused) as backend:
            monitor = SubjectStatusMonitor(backend, fallback=FallbackPolicy())
            statuses = await monitor.refresh(['SUR009', 'SUR011', 'ADMIN1'])

        assert_that(statuses, equal_to({'SUR009': SubjectStatus.ONLINE, 'SUR011': SubjectStatus.OFFLINE}))
        assert_that(monitor.is_fallback, equal_to(True))

    async def test_failure_without_fallback_raises(self, make_backend) -> None:
        async with make_backend(_refused) as backend:
            with pytest.raises(NetworkError):
                await SubjectStatusMonitor(backend).refresh()

    async def test_background_loop_refreshes(self, make_backend) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={'SUR009': 'Online'})

        async with make_backend(handler) as backend:
            monitor = SubjectStatusMonitor(backend, interval=0.01)
            monitor.start()
            async with asyncio.timeout(1):
                while len(calls) < 3:
                    await asyncio.sleep(0.01)
            await monitor.stop()
            await monitor.stop()

        assert_that(monitor.statuses, equal_to({'SUR009': SubjectStatus.ONLINE}))

    async def test_background_loop_survives_failures(self, make_backend) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError('refused', request=request)

        async with make_backend(handler) as backend:
            monitor = SubjectStatusMonitor(backend, interval=0.01)
            monitor.start()
            async with asyncio.timeout(1):
                while len(calls) < 2:
                    await asyncio.sleep(0.01)
            await monitor.stop()
