import asyncio
import logging
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from monkmode.main import app
from monkmode.realtime.connection_manager import ConnectionManager
from monkmode.security import create_access_token
from monkmode.services.notification_service import (
    FRIEND_REQUEST_ACCEPTED,
    FRIEND_REQUEST_RECEIVED,
    FRIEND_REQUEST_REJECTED,
    HubNotificationSink,
    notify_friend_request,
    notify_request_accepted,
    notify_request_rejected,
)


def _make_websocket(fail: bool = False) -> MagicMock:
    """Create a mock WebSocket whose send_json succeeds or raises."""
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    if fail:
        websocket.send_json = AsyncMock(side_effect=RuntimeError("socket closed"))
    else:
        websocket.send_json = AsyncMock()
    return websocket


# ── ConnectionManager ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_connect_registers_socket():
    manager = ConnectionManager()
    websocket = _make_websocket()

    await manager.connect(websocket, "user-1")

    websocket.accept.assert_awaited_once()
    assert manager.is_online("user-1")
    assert not manager.is_online("user-2")


@pytest.mark.asyncio
async def test_send_to_user_reaches_every_device():
    manager = ConnectionManager()
    phone, laptop, other = _make_websocket(), _make_websocket(), _make_websocket()
    await manager.connect(phone, "user-1")
    await manager.connect(laptop, "user-1")
    await manager.connect(other, "user-2")

    sent = await manager.send_to_user("user-1", {"event": "Ping"})

    assert sent == 2
    phone.send_json.assert_awaited_once_with({"event": "Ping"})
    laptop.send_json.assert_awaited_once_with({"event": "Ping"})
    other.send_json.assert_not_called()


@pytest.mark.asyncio
async def test_send_to_offline_user():
    manager = ConnectionManager()
    assert await manager.send_to_user("nobody", {"event": "Ping"}) == 0


@pytest.mark.asyncio
async def test_failed_socket_is_dropped():
    manager = ConnectionManager()
    broken, healthy = _make_websocket(fail=True), _make_websocket()
    await manager.connect(broken, "user-1")
    await manager.connect(healthy, "user-1")

    sent = await manager.send_to_user("user-1", {"event": "Ping"})

    assert sent == 1
    assert manager.user_connections["user-1"] == {healthy}


@pytest.mark.asyncio
async def test_disconnect_last_socket_goes_offline():
    manager = ConnectionManager()
    websocket = _make_websocket()
    await manager.connect(websocket, "user-1")

    manager.disconnect(websocket, "user-1")
    manager.disconnect(websocket, "user-1")

    assert not manager.is_online("user-1")
    assert "user-1" not in manager.user_connections


# ── HubNotificationSink ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_sink_delivers_event_frame():
    manager = ConnectionManager()
    websocket = _make_websocket()
    recipient = uuid.uuid4()
    await manager.connect(websocket, str(recipient))

    sink = HubNotificationSink(manager, timeout=1.0)
    sink.send(recipient, "FriendRequestAccepted", {"user_id": "abc"})
    await sink.drain()

    websocket.send_json.assert_awaited_once_with(
        {"event": "FriendRequestAccepted", "data": {"user_id": "abc"}}
    )


@pytest.mark.asyncio
async def test_sink_send_does_not_wait_for_delivery():
    release = asyncio.Event()

    async def slow_send(user_id, data):
        await release.wait()
        return 1

    manager = MagicMock()
    manager.send_to_user = slow_send
    sink = HubNotificationSink(manager, timeout=1.0)

    sink.send(uuid.uuid4(), "ReceiveFriendRequest", {})
    assert len(sink._pending) == 1

    release.set()
    await sink.drain()
    await asyncio.sleep(0)
    assert len(sink._pending) == 0


@pytest.mark.asyncio
async def test_sink_swallows_delivery_errors(caplog):
    manager = MagicMock()
    manager.send_to_user = AsyncMock(side_effect=RuntimeError("hub down"))
    sink = HubNotificationSink(manager, timeout=1.0)

    with caplog.at_level(logging.ERROR):
        sink.send(uuid.uuid4(), "ReceiveFriendRequest", {})
        await sink.drain()

    assert "ReceiveFriendRequest" in caplog.text


@pytest.mark.asyncio
async def test_sink_times_out_slow_delivery():
    async def never_finishes(user_id, data):
        await asyncio.sleep(10)
        return 1

    manager = MagicMock()
    manager.send_to_user = never_finishes
    sink = HubNotificationSink(manager, timeout=0.01)

    assert await sink._deliver(uuid.uuid4(), "ReceiveFriendRequest", {}) == 0


def test_sink_without_running_loop_drops_event():
    manager = MagicMock()
    manager.send_to_user = AsyncMock()
    sink = HubNotificationSink(manager)

    sink.send(uuid.uuid4(), "ReceiveFriendRequest", {})

    manager.send_to_user.assert_not_called()
    assert len(sink._pending) == 0


# ── notify_* helpers ──────────────────────────────────────────────────


def test_notify_friend_request_targets_recipient():
    notifier = MagicMock()
    requester, recipient = uuid.uuid4(), uuid.uuid4()

    notify_friend_request(notifier, requester, "monk", recipient)

    notifier.send.assert_called_once_with(
        recipient,
        FRIEND_REQUEST_RECEIVED,
        {"requester_id": str(requester), "requester_username": "monk"},
    )


def test_notify_accept_and_reject_target_requester():
    notifier = MagicMock()
    friendship_id, actor, requester = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

    notify_request_accepted(notifier, friendship_id, actor, requester)
    notify_request_rejected(notifier, friendship_id, actor, requester)

    payload = {"user_id": str(actor), "friendship_id": str(friendship_id)}
    assert notifier.send.call_args_list[0].args == (requester, FRIEND_REQUEST_ACCEPTED, payload)
    assert notifier.send.call_args_list[1].args == (requester, FRIEND_REQUEST_REJECTED, payload)


def test_notify_helpers_swallow_sink_errors():
    notifier = MagicMock()
    notifier.send.side_effect = ConnectionError("boom")

    notify_friend_request(notifier, uuid.uuid4(), "monk", uuid.uuid4())
    notify_request_accepted(notifier, uuid.uuid4(), uuid.uuid4(), uuid.uuid4())

    assert notifier.send.call_count == 2


def test_notify_helpers_without_sink():
    notify_request_rejected(None, uuid.uuid4(), uuid.uuid4(), uuid.uuid4())


# ── /hubs/notifications ───────────────────────────────────────────────


def test_hub_rejects_missing_token():
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/hubs/notifications"):
            pass
    assert exc_info.value.code == 1008


def test_hub_rejects_invalid_token():
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/hubs/notifications?access_token=not-a-jwt"):
            pass
    assert exc_info.value.code == 1008


def test_hub_registers_authenticated_user():
    user_id = uuid.uuid4()
    token = create_access_token(user_id)
    manager = app.state.connection_manager
    client = TestClient(app)

    with client.websocket_connect(f"/hubs/notifications?access_token={token}") as websocket:
        greeting = websocket.receive_json()
        assert greeting == {"event": "Connected", "data": {"user_id": str(user_id)}}
        assert manager.is_online(str(user_id))
