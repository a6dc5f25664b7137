"""
Tests for client domain types and geometry helpers.
"""
from datetime import UTC, datetime, timedelta, timezone

import pytest
from hamcrest import assert_that, close_to, equal_to, has_entries

from tracking_client.config import ClientConfig
from tracking_client.errors import BackendError, NetworkError, ServerRejected
from tracking_client.geo import haversine_km, haversine_m
from tracking_client.models import (LocationSample, SubjectStatus, Track,
                                    format_timestamp, parse_timestamp)


class TestTimestamps:
    """Tests for wire timestamp parsing and formatting."""

    def test_parse_zulu(self) -> None:
        assert_that(parse_timestamp('2025-07-01T10:00:00Z'),
                    equal_to(datetime(2025, 7, 1, 10, 0, tzinfo=UTC)))

    def test_parse_naive_is_utc(self) -> None:
        assert_that(parse_timestamp('2025-07-01T10:00:00').tzinfo, equal_to(UTC))

    def test_parse_offset_is_converted(self) -> None:
        assert_that(parse_timestamp('2025-07-01T15:30:00+05:30'),
                    equal_to(datetime(2025, 7, 1, 10, 0, tzinfo=UTC)))

    def test_parse_unix_seconds(self) -> None:
        assert_that(parse_timestamp(0), equal_to(datetime(1970, 1, 1, tzinfo=UTC)))

    @pytest.mark.parametrize('value', [None, '', 'soon', True])
    def test_parse_rejects(self, value: object) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_format_converts_to_utc(self) -> None:
        ist = timezone(timedelta(hours=5, minutes=30))
        assert_that(format_timestamp(datetime(2025, 7, 1, 15, 30, 45, 999, tzinfo=ist)),
                    equal_to('2025-07-01T10:00:45Z'))


class TestLocationSample:
    """Tests for LocationSample validation and wire conversion."""

    def test_to_payload(self) -> None:
        sample = LocationSample('SUR009', 17.4, 78.5, datetime(2025, 7, 1, 10, tzinfo=UTC))

        assert_that(sample.to_payload(), equal_to({
            'surveyorId': 'SUR009', 'latitude': 17.4, 'longitude': 78.5,
            'timestamp': '2025-07-01T10:00:00Z',
        }))

    @pytest.mark.parametrize('lat,lng', [(90.1, 0), (-91, 0), (0, 180.5), (0, -181)])
    def test_rejects_out_of_range(self, lat: float, lng: float) -> None:
        with pytest.raises(ValueError):
            LocationSample('SUR009', lat, lng, datetime.now(tz=UTC))

    def test_rejects_naive_time(self) -> None:
        with pytest.raises(ValueError):
            LocationSample('SUR009', 0, 0, datetime(2025, 7, 1))

    def test_from_payload_uses_fallback_subject(self) -> None:
        sample = LocationSample.from_payload(
            {'latitude': '17.4', 'longitude': 78.5, 'timestamp': '2025-07-01T10:00:00Z'},
            subject_id='SUR009',
        )

        assert_that(sample.subject_id, equal_to('SUR009'))
        assert_that(sample.latitude, equal_to(17.4))

    def test_from_payload_requires_coordinates(self) -> None:
        with pytest.raises(ValueError):
            LocationSample.from_payload({'surveyorId': 'SUR009', 'latitude': 1.0})

    def test_from_payload_requires_subject(self) -> None:
        with pytest.raises(ValueError):
            LocationSample.from_payload({'latitude': 1.0, 'longitude': 2.0, 'timestamp': 0})


class TestTrackAndStatus:
    """Tests for Track flags and status parsing."""

    def test_no_data_in_range(self) -> None:
        now = datetime.now(tz=UTC)
        assert_that(Track('SUR009', now, now).no_data_in_range, equal_to(True))
        assert_that(Track('SUR009', now, now, is_fallback=True).no_data_in_range, equal_to(False))

    @pytest.mark.parametrize('value,expected', [
        ('Online', SubjectStatus.ONLINE),
        ('online ', SubjectStatus.ONLINE),
        (True, SubjectStatus.ONLINE),
        ('Offline', SubjectStatus.OFFLINE),
        (False, SubjectStatus.OFFLINE),
        (None, SubjectStatus.OFFLINE),
    ])
    def test_status_parse(self, value: object, expected: SubjectStatus) -> None:
        assert_that(SubjectStatus.parse(value), equal_to(expected))


class TestGeo:
    """Tests for great-circle distance."""

    def test_zero_distance(self) -> None:
        assert_that(haversine_km(17.4, 78.5, 17.4, 78.5), equal_to(0.0))

    def test_one_degree_of_latitude(self) -> None:
        assert_that(haversine_km(0, 0, 1, 0), close_to(111.19, 0.01))
        assert_that(haversine_m(0, 0, 1, 0), close_to(111195, 1))


class TestClientConfig:
    """Tests for configuration values and environment loading."""

    def test_api_url(self) -> None:
        assert_that(ClientConfig(backend_url='http://host:8080/').api_url, equal_to('http://host:8080/api'))

    def test_rejects_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match='live strategy'):
            ClientConfig(live_strategy='carrier-pigeon')

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv('TRACKING_BACKEND_HOST', 'tracker.example')
        monkeypatch.setenv('TRACKING_BACKEND_PORT', '9000')
        monkeypatch.setenv('TRACKING_LIVE_STRATEGY', 'push')
        monkeypatch.setenv('TRACKING_DEFAULT_CENTER', '12.5,77.25')

        config = ClientConfig.from_env(poll_interval=5.0)

        assert_that(config.backend_url, equal_to('http://tracker.example:9000'))
        assert_that(config.live_strategy, equal_to('push'))
        assert_that(config.default_center, equal_to((12.5, 77.25)))
        assert_that(config.poll_interval, equal_to(5.0))


class TestErrors:
    """Tests for the error taxonomy."""

    def test_network_error_is_backend_error(self) -> None:
        assert_that(issubclass(NetworkError, BackendError), equal_to(True))

    def test_server_rejected_carries_status(self) -> None:
        error = ServerRejected(503, 'maintenance')

        assert_that(vars(error), has_entries(status_code=503, body='maintenance'))
        assert_that(str(error), equal_to('Backend rejected request with HTTP 503: maintenance'))
