"""Room-scoped broadcasts and kitchen relays of the WebSocket hub."""

from starlette.websockets import WebSocketState

from dinehub import realtime
from dinehub.realtime import RealtimeHub
from dinehub.routers import realtime as realtime_router
from dinehub.schemas import DineInOrderCreate, OrderItemCreate
from dinehub.services import orders as orders_service


class FakeWebSocket:
    def __init__(self, fail=False, incoming=()):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.accepted = False
        self.fail = fail
        self.sent = []
        self.incoming = list(incoming)
        self.close_code = None

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    async def receive_json(self):
        frame = self.incoming.pop(0)
        if isinstance(frame, bytes):
            raise KeyError("text")
        return frame

    async def close(self, code=1000):
        self.close_code = code

    def events(self):
        return [m["event"] for m in self.sent]


async def test_broadcast_is_scoped_to_restaurant():
    hub = RealtimeHub()
    mine, other = FakeWebSocket(), FakeWebSocket()
    await hub.connect(mine, "main", 1)
    await hub.connect(other, "main", 2)

    delivered = await hub.broadcast("tableUpdate", {"number": 4}, 1)

    assert delivered == 1
    assert mine.accepted
    assert mine.sent == [{"event": "tableUpdate", "data": {"number": 4}}]
    assert other.sent == []


async def test_namespace_filter():
    hub = RealtimeHub()
    cook, admin = FakeWebSocket(), FakeWebSocket()
    await hub.connect(cook, "kitchenCook", 1)
    await hub.connect(admin, "kitchenAdmin", 1)

    await hub.broadcast("ping", None, 1, namespaces=("kitchenAdmin",))

    assert cook.sent == []
    assert admin.events() == ["ping"]


async def test_relay_rules():
    hub = RealtimeHub()
    cook, admin, main = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    await hub.connect(cook, "kitchenCook", 1)
    await hub.connect(admin, "kitchenAdmin", 1)
    await hub.connect(main, "main", 1)

    assert await hub.handle_client_message("kitchenCook", 1, {"event": "cookOrderUpdate", "data": {"id": 9}})
    assert await hub.handle_client_message("kitchenAdmin", 1, {"event": "adminNotification", "data": "hurry"})
    assert not await hub.handle_client_message("main", 1, {"event": "cookOrderUpdate"})
    assert not await hub.handle_client_message("kitchenCook", 1, ["not", "a", "dict"])

    assert admin.sent == [{"event": "cookOrderUpdate", "data": {"id": 9}}]
    assert cook.sent == [{"event": "adminNotification", "data": "hurry"}]
    assert main.sent == []


async def test_failed_send_drops_connection():
    hub = RealtimeHub()
    good, broken = FakeWebSocket(), FakeWebSocket(fail=True)
    await hub.connect(good, "main", 1)
    await hub.connect(broken, "main", 1)

    delivered = await hub.broadcast("ordersUpdate", {}, 1)

    assert delivered == 1
    assert hub.connection_count() == 1


async def test_order_placement_emits_events(db, restaurant, tables):
    screen = FakeWebSocket()
    await realtime.hub.connect(screen, "main", restaurant.id)

    data = DineInOrderCreate(table_number=1, items=[OrderItemCreate(name="Soup", quantity=1, unit_price=4.0)])
    order = await orders_service.place_dine_in_order(db, restaurant.id, data)

    assert screen.events() == ["tableUpdate", "ordersUpdate"]
    assert screen.sent[1]["data"] == {"type": "create", "orderIds": [order.id]}


async def test_binary_frame_closes_socket_as_unsupported(monkeypatch):
    local_hub = RealtimeHub()
    monkeypatch.setattr(realtime_router, "hub", local_hub)
    socket = FakeWebSocket(incoming=[{"event": "ping"}, b"\x00\x01"])

    await realtime_router.realtime_socket(socket, "kitchenCook", restaurant_id=1)

    assert socket.close_code == 1003
    assert local_hub.connection_count() == 0
