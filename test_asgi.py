"""
Tests for the ASGI entry point.
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from hamcrest import assert_that, equal_to, has_entries


class TestClientDisconnectMiddleware:
    """Tests for the ClientDisconnectMiddleware ASGI middleware."""

    @pytest.mark.asyncio
    async def test_passes_normal_requests_through(self) -> None:
        """Normal requests are forwarded to the wrapped app unchanged."""
        from config.asgi import ClientDisconnectMiddleware

        inner_app = AsyncMock()
        middleware = ClientDisconnectMiddleware(inner_app)

        scope = {"type": "http", "method": "GET", "path": "/api/location/SUR009/latest"}
        receive = AsyncMock()
        send = AsyncMock()

        await middleware(scope, receive, send)

        inner_app.assert_called_once_with(scope, receive, send)

    @pytest.mark.asyncio
    async def test_swallows_cancellation_when_event_stream_client_leaves(self) -> None:
        """A dashboard closing its event stream does not surface as an error."""
        from config.asgi import ClientDisconnectMiddleware

        inner_app = AsyncMock(side_effect=asyncio.CancelledError)
        middleware = ClientDisconnectMiddleware(inner_app)

        scope = {"type": "http", "method": "GET", "path": "/api/location/SUR009/events"}

        await middleware(scope, AsyncMock(), AsyncMock())

    @pytest.mark.asyncio
    async def test_logs_disconnect_at_debug_level(self) -> None:
        """Client disconnect is logged at DEBUG with method and path."""
        from config.asgi import ClientDisconnectMiddleware

        inner_app = AsyncMock(side_effect=asyncio.CancelledError)
        middleware = ClientDisconnectMiddleware(inner_app)

        scope = {"type": "http", "method": "POST", "path": "/api/location"}

        with patch("config.asgi.logger") as mock_logger:
            await middleware(scope, AsyncMock(), AsyncMock())

        mock_logger.debug.assert_called_once_with(
            "Client disconnected during %s %s", "POST", "/api/location"
        )

    @pytest.mark.asyncio
    async def test_propagates_other_exceptions(self) -> None:
        """Non-CancelledError exceptions are not caught."""
        from config.asgi import ClientDisconnectMiddleware

        inner_app = AsyncMock(side_effect=ValueError("something broke"))
        middleware = ClientDisconnectMiddleware(inner_app)

        scope = {"type": "http", "method": "GET", "path": "/api/surveyors"}

        with pytest.raises(ValueError, match="something broke"):
            await middleware(scope, AsyncMock(), AsyncMock())


@pytest.mark.django_db
class TestHealthEndpoint:
    """The health probe used by deployments."""

    def test_health_returns_ok(self, client) -> None:
        response = client.get('/health/')

        assert_that(response.status_code, equal_to(200))
        assert_that(response.json(), has_entries(status='ok'))
