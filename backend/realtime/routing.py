"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers import EventsConsumer

websocket_urlpatterns = [
    # URL: ws://localhost:8000/ws/events/?token=<access>
    re_path(
        r"ws/events/$",
        EventsConsumer.as_asgi(),
        name="events-ws"
    ),
]
