"""
Async client for the surveyor tracking backend.

Wraps an ``httpx.AsyncClient`` and translates transport and status
failures into the client's error taxonomy at this single boundary.
"""
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from .config import ClientConfig
from .errors import NetworkError, ServerRejected
from .models import LocationSample

logger = logging.getLogger(__name__)


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, str]]:
    """
    Group server-sent-event lines into ``(event, data)`` pairs.

    Comment lines (``: keepalive``) are ignored; an event without an
    explicit name is reported as ``"message"``.
    """
    event = 'message'
    data_lines: list[str] = []
    async for raw in lines:
        line = raw.rstrip('\r')
        if not line:
            if data_lines:
                yield event, '\n'.join(data_lines)
            event = 'message'
            data_lines = []
            continue
        if line.startswith(':'):
            continue
        name, _, value = line.partition(':')
        value = value[1:] if value.startswith(' ') else value
        if name == 'event':
            event = value
        elif name == 'data':
            data_lines.append(value)
    if data_lines:
        yield event, '\n'.join(data_lines)


class EventStream:
    """
    An open ``text/event-stream`` response yielding location samples.

    Iteration ends when the server closes the stream; call ``aclose()``
    to release the connection early.
    """

    def __init__(self, response: httpx.Response, subject_id: str) -> None:
        self._response = response
        self.subject_id = subject_id

    async def __aiter__(self) -> AsyncIterator[LocationSample]:
        try:
            async for event, data in iter_sse_events(self._response.aiter_lines()):
                if event != 'location':
                    continue
                try:
                    yield LocationSample.from_payload(json.loads(data), subject_id=self.subject_id)
                except (ValueError, TypeError) as e:
                    logger.warning("Ignoring malformed location event for %s: %s", self.subject_id, e)
        except httpx.HTTPError as e:
            raise NetworkError(f"Event stream for {self.subject_id} failed: {e}") from e

    async def aclose(self) -> None:
        await self._response.aclose()


class BackendClient:
    """
    Typed wrapper over the backend REST surface.

    Args:
        config: Client configuration (base URL and timeouts)
        client: Optional pre-built ``httpx.AsyncClient`` (tests inject one
            with a mock transport)
    """

    def __init__(self, config: ClientConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.api_url,
            timeout=httpx.Timeout(config.request_timeout, connect=config.connect_timeout),
        )

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Timed out calling {method} {path}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Could not reach backend for {method} {path}: {e}") from e

        if response.status_code >= 400:
            logger.debug("%s %s rejected with %d", method, path, response.status_code)
            raise ServerRejected(response.status_code, response.text)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            # e.g. an HTML error page from a proxy in front of the backend
            logger.debug("Unreadable %d response body: %s", response.status_code, e)
            raise ServerRejected(response.status_code, response.text) from e

    # Surveyors

    async def list_surveyors(self, city: str | None = None, project: str | None = None) -> list[dict[str, Any]]:
        """List surveyors, through the filter endpoint when a filter is set."""
        if city or project:
            params = {k: v for k, v in (('city', city), ('project', project)) if v}
            response = await self._request('GET', '/surveyors/filter', params=params)
        else:
            response = await self._request('GET', '/surveyors')
        return self._json(response) or []

    async def surveyor_statuses(self) -> dict[str, Any]:
        response = await self._request('GET', '/surveyors/status')
        return self._json(response) or {}

    async def save_surveyor(self, data: dict[str, Any]) -> dict[str, Any]:
        response = await self._request('POST', '/surveyors', json=data)
        return self._json(response) or {}

    async def delete_surveyor(self, surveyor_id: str) -> None:
        await self._request('DELETE', f'/surveyors/{surveyor_id}')

    async def login(self, username: str, password: str, admin: bool = False) -> dict[str, Any]:
        """Authenticate a surveyor (mobile) or an operator (dashboard)."""
        path = '/surveyors/admin/login' if admin else '/surveyors/login'
        response = await self._request('POST', path, json={'username': username, 'password': password})
        return self._json(response) or {}

    # Locations

    async def post_location(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._request('POST', '/location', json=payload)
        return self._json(response) or {}

    async def latest_location(self, subject_id: str) -> dict[str, Any] | None:
        """Return the latest record for a subject, or None when it has none."""
        response = await self._request('GET', f'/location/{subject_id}/latest')
        return self._json(response)

    async def track(self, subject_id: str, start: str, end: str) -> Any:
        """
        Query a subject's track between two ISO 8601 UTC bounds.

        Returns the decoded body untouched (a list or a ``{"content": ...}``
        envelope), or None for an empty result.
        """
        response = await self._request(
            'GET', f'/location/{subject_id}/track', params={'start': start, 'end': end}
        )
        return self._json(response)

    async def open_event_stream(self, subject_id: str) -> EventStream:
        """Open the per-subject server-sent-event stream."""
        request = self._client.build_request(
            'GET', f'/location/{subject_id}/events',
            headers={'Accept': 'text/event-stream'},
            timeout=httpx.Timeout(self.config.request_timeout, connect=self.config.connect_timeout, read=None),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Timed out opening event stream for {subject_id}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Could not open event stream for {subject_id}: {e}") from e

        if response.status_code >= 400:
            body = (await response.aread()).decode('utf-8', errors='replace')
            await response.aclose()
            raise ServerRejected(response.status_code, body)
        return EventStream(response, subject_id)

    # Configuration

    async def system_config(self) -> dict[str, Any]:
        response = await self._request('GET', '/config/system')
        return self._json(response) or {}

    async def update_system_config(self, data: dict[str, Any]) -> dict[str, Any]:
        response = await self._request('PUT', '/config/system', json=data)
        return self._json(response) or {}

    async def dropdowns(self) -> dict[str, list[str]]:
        response = await self._request('GET', '/config/dropdowns')
        return self._json(response) or {}
