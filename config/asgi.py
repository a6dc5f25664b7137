"""
ASGI entry point for the surveyor tracking backend.

HTTP (REST API and server-sent event streams) goes to Django; WebSocket
connections on ``ws/location/<surveyor_id>/`` go to Channels.

See https://docs.djangoproject.com/en/5.0/howto/deployment/asgi/
"""

import asyncio
import logging
import os
from typing import Any, Callable, cast

from channels.auth import AuthMiddlewareStack
from channels.routing import ProtocolTypeRouter, URLRouter
from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# The app registry must be ready before the routing module imports models
django_asgi_app = get_asgi_application()

from surveyor_tracking.routing import websocket_urlpatterns  # noqa: E402

logger = logging.getLogger(__name__)


class ClientDisconnectMiddleware:
    """ASGI middleware that turns client disconnects into a debug log line.

    Event streams stay open until the dashboard goes away, so every closed
    tab or dropped mobile connection ends with the server cancelling the
    request task. Left alone, that CancelledError reaches the event loop
    and is logged as an ERROR with a traceback.
    """

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        try:
            await self.app(scope, receive, send)
        except asyncio.CancelledError:
            logger.debug("Client disconnected during %s %s", scope.get('method', ''), scope.get('path', ''))


application = ProtocolTypeRouter({
    "http": ClientDisconnectMiddleware(django_asgi_app),
    "websocket": AuthMiddlewareStack(
        URLRouter(
            cast(list, websocket_urlpatterns)  # type: ignore[arg-type]
        )
    ),
})
