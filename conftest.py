"""Shared test fixtures for the surveyor tracking project."""

from collections.abc import Callable
from typing import Any

import httpx
import pytest
from rest_framework.test import APIClient

from surveyor_tracking.models import Surveyor
from tracking_client.api import BackendClient
from tracking_client.config import ClientConfig

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def api_client() -> APIClient:
    """Provide an unauthenticated DRF API client; the API allows anyone."""
    return APIClient()


@pytest.fixture
def surveyor(db: Any) -> Surveyor:
    """Create a surveyor with mobile credentials."""
    surveyor = Surveyor(
        id='SUR009', name='Kiran', city='Hyderabad', project_name='PTMS', username='kiran_sur'
    )
    surveyor.set_password('secret123')
    surveyor.save()
    return surveyor


@pytest.fixture
def client_config() -> ClientConfig:
    """Provide a client configuration pointing at a fake backend."""
    return ClientConfig(backend_url='http://backend.test', connect_timeout=0.5, poll_interval=0.01)


@pytest.fixture
def make_backend(client_config: ClientConfig) -> Callable[[Handler], BackendClient]:
    """Build a BackendClient whose HTTP traffic is answered by a handler function."""

    def factory(handler: Handler) -> BackendClient:
        transport = httpx.MockTransport(handler)
        client = httpx.AsyncClient(transport=transport, base_url=client_config.api_url)
        return BackendClient(client_config, client=client)

    return factory
