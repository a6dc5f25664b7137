"""
Server-sent-event stream of a surveyor's live samples.

Each connection joins the surveyor's channel layer group, the same group
the ingest endpoint broadcasts to, and forwards every ``location_update``
as an ``event: location`` message.
"""
import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from channels.layers import get_channel_layer
from django.conf import settings
from django.http import (HttpRequest, HttpResponse, HttpResponseNotAllowed,
                         JsonResponse, StreamingHttpResponse)

from .utils import group_name

logger = logging.getLogger(__name__)


def format_event(data: dict[str, Any], event: str = 'location') -> str:
    """Encode one server-sent event."""
    return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"


async def event_stream(channel_layer: Any, surveyor_id: str, keepalive: float) -> AsyncIterator[str]:
    """
    Yield server-sent-event chunks for a surveyor until the client goes away.

    A comment line is sent first so the client sees the response start,
    and again whenever ``keepalive`` seconds pass without a sample.
    """
    channel = await channel_layer.new_channel()
    group = group_name(surveyor_id)
    await channel_layer.group_add(group, channel)
    logger.info("Event stream opened for %s", surveyor_id)
    try:
        yield f": subscribed {surveyor_id}\n\n"
        while True:
            try:
                message = await asyncio.wait_for(channel_layer.receive(channel), timeout=keepalive)
            except TimeoutError:
                yield ": keepalive\n\n"
                continue
            if message.get('type') != 'location_update':
                continue
            yield format_event(message.get('data', {}))
    finally:
        await channel_layer.group_discard(group, channel)
        logger.info("Event stream closed for %s", surveyor_id)


async def location_events(request: HttpRequest, surveyor_id: str) -> HttpResponse:
    """Stream ``text/event-stream`` location events for one surveyor."""
    if request.method != 'GET':
        return HttpResponseNotAllowed(['GET'])
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return JsonResponse({'error': "Live events unavailable: no channel layer configured"}, status=503)

    keepalive = float(getattr(settings, 'EVENT_STREAM_KEEPALIVE_SECONDS', 15))
    response = StreamingHttpResponse(
        event_stream(channel_layer, surveyor_id, keepalive),
        content_type='text/event-stream',
    )
    response['Cache-Control'] = 'no-cache'
    response['X-Accel-Buffering'] = 'no'
    return response
