"""
Tests for the command line front end, with the backend mocked.
"""
import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from hamcrest import (assert_that, contains_string, equal_to, has_entries,
                      has_length)

from tracking_client import cli
from tracking_client.api import BackendClient
from tracking_client.config import ClientConfig
from tracking_client.dashboard import TrackingDashboard

TRACK = [
    {'latitude': 17.40, 'longitude': 78.50, 'timestamp': '2025-07-01T09:30:00Z'},
    {'latitude': 17.41, 'longitude': 78.50, 'timestamp': '2025-07-01T10:30:00Z'},
]


def _mock_backend(config: ClientConfig, handler: Callable[[httpx.Request], httpx.Response]) -> BackendClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=config.api_url)
    return BackendClient(config, client=client)


@pytest.fixture
def backend_handler(monkeypatch: pytest.MonkeyPatch) -> Callable[[Callable], None]:
    """Route every backend the CLI builds to a handler function."""
    monkeypatch.setattr(cli, 'configure_logging', lambda level: None)

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> None:
        monkeypatch.setattr(cli, 'BackendClient', lambda config: _mock_backend(config, handler))
        monkeypatch.setattr(
            cli, 'TrackingDashboard',
            lambda config: TrackingDashboard(config, backend=_mock_backend(config, handler)),
        )

    return install


class TestParser:
    """Tests for argument parsing."""

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_history_dates(self) -> None:
        args = cli.build_parser().parse_args([
            'history', '--subject', 'SUR009', '--start', '2025-07-01T09:00:00Z', '--end', '2025-07-01T17:00',
        ])

        assert_that(args.start.utcoffset().total_seconds(), equal_to(0))
        assert_that(args.end.tzinfo, equal_to(None))

    def test_bad_date_is_rejected(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(['history', '--subject', 'S', '--start', 'today', '--end', 'x'])


class TestCommands:
    """Tests for the subcommands end to end."""

    def test_history_prints_track(self, backend_handler, capsys) -> None:
        backend_handler(lambda request: httpx.Response(200, json={'content': TRACK}))

        code = cli.main([
            'history', '--subject', 'SUR009',
            '--start', '2025-07-01T09:00:00Z', '--end', '2025-07-01T17:00:00Z',
        ])

        assert_that(code, equal_to(0))
        output = json.loads(capsys.readouterr().out)
        assert_that(output, has_entries(subject='SUR009', demo=False, notice=None))
        assert_that(output['points'], has_length(2))
        assert_that(output['distanceKm'], equal_to(1.112))

    def test_history_with_unreachable_backend_prints_demo_route(self, backend_handler, capsys) -> None:
        def refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('refused', request=request)

        backend_handler(refused)

        code = cli.main([
            'history', '--subject', 'SUR009',
            '--start', '2025-07-01T09:00:00Z', '--end', '2025-07-01T17:00:00Z',
        ])

        assert_that(code, equal_to(0))
        assert_that(json.loads(capsys.readouterr().out),
                    has_entries(demo=True, demoReason='backend unreachable'))

    def test_history_inverted_range(self, backend_handler, capsys) -> None:
        backend_handler(lambda request: httpx.Response(204))

        code = cli.main([
            'history', '--subject', 'SUR009',
            '--start', '2025-07-01T17:00:00Z', '--end', '2025-07-01T09:00:00Z',
        ])

        assert_that(code, equal_to(2))
        assert_that(capsys.readouterr().out, contains_string('Start time must be before end time'))

    def test_status(self, backend_handler, capsys) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == '/api/surveyors/status':
                return httpx.Response(200, json={'SUR009': 'Online', 'SUR010': 'Offline'})
            return httpx.Response(200, json=[{'id': 'SUR009'}, {'id': 'SUR010'}])

        backend_handler(handler)

        code = cli.main(['status'])

        assert_that(code, equal_to(0))
        assert_that(capsys.readouterr().out, equal_to('SUR009\tOnline\nSUR010\tOffline\n'))

    def test_sample_replays_csv(self, backend_handler, tmp_path: Path) -> None:
        uploads = []

        def handler(request: httpx.Request) -> httpx.Response:
            uploads.append(json.loads(request.content))
            return httpx.Response(201, json={})

        backend_handler(handler)
        path = tmp_path / 'walk.csv'
        path.write_text(
            'latitude,longitude,timestamp\n'
            '17.40,78.50,2025-07-01T10:00:00Z\n'
            '17.40,78.50,2025-07-01T10:00:05Z\n'
            '17.41,78.50,2025-07-01T10:00:10Z\n'
        )

        code = cli.main(['sample', '--subject', 'SUR009', '--replay', str(path)])

        assert_that(code, equal_to(0))
        assert_that([u['timestamp'] for u in uploads],
                    equal_to(['2025-07-01T10:00:00Z', '2025-07-01T10:00:10Z']))

    def test_invalid_configuration_exits_with_error(self, backend_handler, monkeypatch) -> None:
        backend_handler(lambda request: httpx.Response(200, json={}))
        monkeypatch.setenv('TRACKING_LIVE_STRATEGY', 'carrier-pigeon')

        assert_that(cli.main(['status']), equal_to(1))
