"""WebSocket consumer forwarding order events to connected customers and drivers."""

import logging
from typing import Any, Dict, Optional, Set

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

logger = logging.getLogger(__name__)


@database_sync_to_async
def _get_driver_id(user_id: int) -> Optional[int]:
    from drivers.models import Driver

    return Driver.objects.filter(user_id=user_id).values_list("id", flat=True).first()


class EventsConsumer(AsyncJsonWebsocketConsumer):
    """
    Joins the user's personal group (and the driver group for drivers) and
    relays server-side order events.

    Events arrive at-least-once; clients de-duplicate on (type, order_id, status).
    """

    async def connect(self):
        self.user = self.scope.get("user")

        if self.user is None or self.user.is_anonymous:
            await self.close()
            return

        self.user_id = getattr(self.user, "id", None)
        self.role = getattr(self.user, "role", None)
        self.joined_groups: Set[str] = set()

        await self._join_group(f"user_{self.user_id}")

        self.driver_id = None
        if self.role == "driver":
            self.driver_id = await _get_driver_id(self.user_id)
            if self.driver_id is not None:
                await self._join_group(f"driver_{self.driver_id}")

        await self.accept()
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "driver_id": self.driver_id,
        })

    async def disconnect(self, close_code):
        """Leave all joined groups on disconnect."""
        try:
            for group in list(getattr(self, "joined_groups", ())):
                await self._leave_group(group)
        except Exception:
            logger.exception("Error during disconnect for user %s", getattr(self, "user_id", "unknown"))

    async def receive_json(self, data: Dict[str, Any], **kwargs):
        if data.get("type") == "ping":
            await self.send_json({"type": "pong"})
            return
        await self.send_json({
            "type": "error",
            "message": "This channel only delivers server events",
        })

    # ---------------------- Group Management Helpers ----------------------

    async def _join_group(self, group_name: str):
        await self.channel_layer.group_add(group_name, self.channel_name)
        self.joined_groups.add(group_name)

    async def _leave_group(self, group_name: str):
        await self.channel_layer.group_discard(group_name, self.channel_name)
        self.joined_groups.discard(group_name)

    # ---------------------- Server Event Handlers ----------------------
    # Called for group_send messages; payloads are forwarded unchanged.

    async def _forward(self, event):
        await self.send_json(event)

    async def order_available(self, event):
        await self._forward(event)

    async def order_assigned(self, event):
        await self._forward(event)

    async def offer_received(self, event):
        await self._forward(event)

    async def offer_closed(self, event):
        await self._forward(event)

    async def order_status_changed(self, event):
        await self._forward(event)

    async def order_cancelled(self, event):
        await self._forward(event)
