"""
WebSocket consumer for a surveyor's live location topic.

Each connection subscribes to one surveyor's group and receives every
sample the ingest endpoint broadcasts for that surveyor.
"""
import json
import logging
from typing import Any

from channels.generic.websocket import AsyncWebsocketConsumer

from surveyor_tracking import STARTUP_TIMESTAMP

from .utils import group_name

logger = logging.getLogger(__name__)


class LocationConsumer(AsyncWebsocketConsumer):
    """
    WebSocket consumer for real-time location updates of one surveyor.

    URL: ``ws/location/<surveyor_id>/``
    """

    def get_client_address(self) -> str:
        """Get formatted client address (IP:port)."""
        headers = dict(self.scope.get('headers', []))
        x_forwarded_for = headers.get(b'x-forwarded-for')
        if x_forwarded_for:
            return x_forwarded_for.decode().split(',')[0].strip()
        client = self.scope.get('client')
        if client:
            return f"{client[0]}:{client[1]}" if len(client) > 1 else str(client[0])
        return 'unknown'

    async def connect(self) -> None:
        """Join the surveyor's group and send the welcome message."""
        self.surveyor_id = self.scope['url_route']['kwargs']['surveyor_id']
        self.group = group_name(self.surveyor_id)
        await self.channel_layer.group_add(self.group, self.channel_name)
        await self.accept()

        logger.info(
            "WebSocket client %s subscribed to %s", self.get_client_address(), self.surveyor_id,
            extra={"channel": self.channel_name}
        )

        # Clients use server_startup to detect backend restarts
        await self.send(text_data=json.dumps({
            'type': 'welcome',
            'surveyorId': self.surveyor_id,
            'server_startup': STARTUP_TIMESTAMP
        }))

    async def disconnect(self, close_code: int) -> None:
        """Leave the surveyor's group."""
        group = getattr(self, 'group', None)
        if group:
            await self.channel_layer.group_discard(group, self.channel_name)
        logger.info(
            "WebSocket client %s disconnected", self.get_client_address(),
            extra={"channel": self.channel_name, "close_code": close_code}
        )

    async def location_update(self, event: dict[str, Any]) -> None:
        """
        Receive location update from channel layer and send to WebSocket.

        Args:
            event: Dictionary containing location data
        """
        logger.debug("Sending location update to %s", self.get_client_address())
        await self.send(text_data=json.dumps({
            'type': 'location',
            'data': event['data']
        }))
