"""
Real-time Notification Hub

In-process WebSocket hub. Browser clients connect to ``/ws/{namespace}``
and join the room of their restaurant; services push named events to a
room after their transaction commits.

Namespaces:
    - main: dashboards, POS, table map
    - kitchenCook: kitchen staff screens
    - kitchenAdmin: kitchen supervisor screens

Wire format (both directions): ``{"event": <name>, "data": <payload>}``.

Delivery is best-effort. A connection whose send fails is dropped and the
failure logged; callers never see broadcast errors.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

NAMESPACES = ("main", "kitchenCook", "kitchenAdmin")

# (source namespace, event) -> target namespace
RELAYS = {
    ("kitchenCook", "cookOrderUpdate"): "kitchenAdmin",
    ("kitchenAdmin", "adminNotification"): "kitchenCook",
}


def _is_ws_connected(ws: WebSocket) -> bool:
    return ws.client_state == WebSocketState.CONNECTED and ws.application_state == WebSocketState.CONNECTED


class RealtimeHub:
    """
    Tracks connections by (namespace, restaurant_id) room.

    Modifications of the room index happen under an ``asyncio.Lock``;
    broadcasts iterate over a snapshot so a concurrent disconnect cannot
    break the loop.
    """

    def __init__(self):
        self._rooms: dict[tuple[str, int], set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, namespace: str, restaurant_id: int) -> None:
        await websocket.accept()
        async with self._lock:
            self._rooms.setdefault((namespace, restaurant_id), set()).add(websocket)
        logger.info(f"🔌 Client joined {namespace}/{restaurant_id}")

    async def disconnect(self, websocket: WebSocket, namespace: str, restaurant_id: int) -> None:
        async with self._lock:
            room = self._rooms.get((namespace, restaurant_id))
            if room is not None:
                room.discard(websocket)
                if not room:
                    del self._rooms[(namespace, restaurant_id)]
        logger.info(f"🔌 Client left {namespace}/{restaurant_id}")

    def connection_count(self, namespace: Optional[str] = None) -> int:
        return sum(
            len(conns) for (ns, _), conns in self._rooms.items()
            if namespace is None or ns == namespace
        )

    async def broadcast(
        self,
        event: str,
        data: Any,
        restaurant_id: int,
        namespaces: Iterable[str] = NAMESPACES,
    ) -> int:
        """
        Send an event to every connection in the restaurant's rooms.

        Returns:
            Number of connections the message was delivered to
        """
        message = {"event": event, "data": jsonable_encoder(data)}
        delivered = 0
        dead: list[tuple[str, WebSocket]] = []

        for namespace in namespaces:
            for ws in list(self._rooms.get((namespace, restaurant_id), ())):
                if not _is_ws_connected(ws):
                    dead.append((namespace, ws))
                    continue
                try:
                    await ws.send_json(message)
                    delivered += 1
                except Exception as e:
                    logger.warning(f"⚠️ Dropping {namespace} connection after failed send of '{event}': {e}")
                    dead.append((namespace, ws))

        for namespace, ws in dead:
            await self.disconnect(ws, namespace, restaurant_id)

        logger.debug(f"📡 {event} -> restaurant {restaurant_id} ({delivered} clients)")
        return delivered

    async def handle_client_message(self, namespace: str, restaurant_id: int, message: Any) -> bool:
        """
        Apply relay rules to a message received from a client.

        Returns:
            True if the message was relayed
        """
        if not isinstance(message, dict):
            return False
        target = RELAYS.get((namespace, message.get("event")))
        if target is None:
            return False
        await self.broadcast(message["event"], message.get("data"), restaurant_id, namespaces=(target,))
        return True


hub = RealtimeHub()


async def emit(event: str, data: Any, restaurant_id: int, namespaces: Iterable[str] = NAMESPACES) -> None:
    """Fire-and-forget broadcast used by services after commit."""
    try:
        await hub.broadcast(event, data, restaurant_id, namespaces)
    except Exception as e:
        logger.error(f"❌ Broadcast of '{event}' failed: {e}")
