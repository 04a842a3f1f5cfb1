"""Tests for the WebSocket connection manager."""
import pytest

from vault.chat.manager import ConnectionManager, make_frame


class FakeWebSocket:
    """Minimal stand-in for fastapi.WebSocket."""

    def __init__(self, fail: bool = False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)


@pytest.fixture
def manager():
    return ConnectionManager()


@pytest.mark.asyncio
async def test_connect_accepts_and_assigns_unique_ids(manager):
    ws1, ws2 = FakeWebSocket(), FakeWebSocket()
    id1 = await manager.connect(ws1)
    id2 = await manager.connect(ws2)

    assert ws1.accepted and ws2.accepted
    assert id1 != id2
    assert manager.connection_count() == 2


@pytest.mark.asyncio
async def test_send_targets_one_connection(manager):
    ws1, ws2 = FakeWebSocket(), FakeWebSocket()
    id1 = await manager.connect(ws1)
    await manager.connect(ws2)

    await manager.send(id1, "user:color", "#6ee7b7")

    assert ws1.sent == [{"type": "user:color", "data": "#6ee7b7"}]
    assert ws2.sent == []


@pytest.mark.asyncio
async def test_send_to_unknown_connection_is_noop(manager):
    await manager.send("missing", "user:color", "#6ee7b7")


@pytest.mark.asyncio
async def test_broadcast_reaches_everyone(manager):
    sockets = [FakeWebSocket() for _ in range(3)]
    for ws in sockets:
        await manager.connect(ws)

    await manager.broadcast("chat:system", "hello")

    for ws in sockets:
        assert ws.sent == [make_frame("chat:system", "hello")]


@pytest.mark.asyncio
async def test_broadcast_except_skips_origin(manager):
    ws1, ws2, ws3 = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
    id1 = await manager.connect(ws1)
    await manager.connect(ws2)
    await manager.connect(ws3)

    await manager.broadcast_except(id1, "user:typing", {"username": "a", "isTyping": True})

    assert ws1.sent == []
    assert len(ws2.sent) == 1
    assert len(ws3.sent) == 1


@pytest.mark.asyncio
async def test_dead_connection_removed_without_failing_broadcast(manager):
    healthy, dead = FakeWebSocket(), FakeWebSocket(fail=True)
    await manager.connect(healthy)
    dead_id = await manager.connect(dead)

    await manager.broadcast("chat:system", "hi")

    assert healthy.sent == [make_frame("chat:system", "hi")]
    assert dead_id not in manager.active_connections
    assert manager.connection_count() == 1


@pytest.mark.asyncio
async def test_failed_unicast_drops_connection(manager):
    dead_id = await manager.connect(FakeWebSocket(fail=True))
    await manager.send(dead_id, "user:color", "#fff")
    assert manager.connection_count() == 0


@pytest.mark.asyncio
async def test_disconnect_is_idempotent(manager):
    ws = FakeWebSocket()
    cid = await manager.connect(ws)

    assert manager.disconnect(cid) is ws
    assert manager.disconnect(cid) is None
    assert manager.connection_count() == 0
