"""
WebSocket URL routing for surveyor_tracking app.

One topic per surveyor.
"""
from django.urls import re_path

from . import consumers

websocket_urlpatterns = [
    re_path(r'^ws/location/(?P<surveyor_id>[^/]+)/?$', consumers.LocationConsumer.as_asgi()),
]
