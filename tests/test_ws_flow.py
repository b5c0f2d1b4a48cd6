import asyncio
import time
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from application.services.realtime_service import RealtimeSessionManager
from application.services.token_service import TokenService
from core.config import settings
from infrastructure.realtime.connection_manager import ConnectionManager
from main import app
from shared.codes import BusinessCode


WS_URL = "/api/v1/ws"


@pytest.fixture
def client(sync_db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def party(sync_db, seeder):
    """Owner and member share a trip; mallory is not on it."""
    owner = asyncio.run(seeder.user("Alice"))
    member = asyncio.run(seeder.user("Bob"))
    mallory = asyncio.run(seeder.user("Mallory"))
    trip = asyncio.run(seeder.trip(owner, [member], title="Lisbon"))
    return owner, member, mallory, trip


def _live_connections() -> int:
    return len(app.state.realtime_sessions.connections)


def _wait_for_connections(expected: int, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while _live_connections() != expected and time.monotonic() < deadline:
        time.sleep(0.01)
    assert _live_connections() == expected


def _join(ws, trip_id: int) -> None:
    ws.send_json({"type": "join-room", "tripId": trip_id})
    frame = ws.receive_json()
    assert frame["type"] == "room-joined"


@pytest.mark.parametrize("query", ["", "?token=", "?token=not-a-jwt"])
def test_handshake_without_valid_token_is_refused(client, query):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"{WS_URL}{query}"):
            pass
    assert exc.value.code == 1008
    assert _live_connections() == 0


def test_handshake_with_expired_token_is_refused(client, party):
    owner = party[0]
    token = TokenService().create_access_token(owner, expires_delta=timedelta(seconds=-1))
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"{WS_URL}?token={token}"):
            pass
    assert exc.value.code == 1008


def test_bearer_header_is_accepted(client, seeder, party):
    owner = party[0]
    headers = {"Authorization": f"Bearer {seeder.token(owner)}"}
    with client.websocket_connect(WS_URL, headers=headers) as ws:
        hello = ws.receive_json()
        assert hello["type"] == "connected"
        assert hello["data"]["user"]["id"] == owner.id


def test_send_reaches_every_joined_participant(client, seeder, party):
    owner, member, _, trip = party
    with client.websocket_connect(f"{WS_URL}?token={seeder.token(owner)}") as a, \
            client.websocket_connect(f"{WS_URL}?token={seeder.token(member)}") as b:
        a.receive_json()
        b.receive_json()
        _join(a, trip.id)
        _join(b, trip.id)

        a.send_json({"type": "send-text", "tripId": trip.id, "body": "  boarding now "})

        for ws in (a, b):
            frame = ws.receive_json()
            assert frame["type"] == "message-created"
            assert frame["room"] == f"trip_{trip.id}"
            assert frame["data"]["body"] == "boarding now"
            assert frame["data"]["sender"]["name"] == "Alice"
            assert frame["data"]["createdAt"].endswith("Z")
        assert _live_connections() == 2

    _wait_for_connections(0)


def test_outsider_cannot_join_or_send(client, seeder, party):
    owner, _, mallory, trip = party
    with client.websocket_connect(f"{WS_URL}?token={seeder.token(owner)}") as a, \
            client.websocket_connect(f"{WS_URL}?token={seeder.token(mallory)}") as m:
        a.receive_json()
        m.receive_json()
        _join(a, trip.id)

        m.send_json({"type": "join-room", "tripId": trip.id})
        err = m.receive_json()
        assert err["type"] == "error"
        assert err["data"]["code"] == BusinessCode.TRIP_ACCESS_DENIED
        assert err["data"]["event"] == "join-room"

        m.send_json({"type": "send-text", "tripId": trip.id, "body": "spam"})
        err = m.receive_json()
        assert err["data"]["code"] == BusinessCode.TRIP_ACCESS_DENIED
        assert err["data"]["event"] == "send-text"

        # the socket stays open after errors
        m.send_json({"type": "ping"})
        assert m.receive_json()["type"] == "pong"

        a.send_json({"type": "ping"})
        assert a.receive_json()["type"] == "pong"

    assert asyncio.run(seeder.count_messages(trip)) == 0


def test_unsend_twice_deletes_once(client, seeder, party):
    owner, member, _, trip = party
    with client.websocket_connect(f"{WS_URL}?token={seeder.token(owner)}") as a, \
            client.websocket_connect(f"{WS_URL}?token={seeder.token(member)}") as b:
        a.receive_json()
        b.receive_json()
        _join(a, trip.id)
        _join(b, trip.id)

        a.send_json({"type": "send-text", "tripId": trip.id, "body": "wrong gate"})
        message_id = a.receive_json()["data"]["id"]
        assert b.receive_json()["data"]["id"] == message_id

        b.send_json({"type": "unsend", "tripId": trip.id, "messageId": message_id})
        err = b.receive_json()
        assert err["data"]["code"] == BusinessCode.MESSAGE_OWNERSHIP_REQUIRED

        a.send_json({"type": "unsend", "tripId": trip.id, "messageId": message_id})
        a.send_json({"type": "unsend", "tripId": trip.id, "messageId": message_id})

        deleted = a.receive_json()
        assert deleted["type"] == "message-deleted"
        assert deleted["data"] == {"messageId": message_id, "tripId": trip.id}
        err = a.receive_json()
        assert err["type"] == "error"
        assert err["data"]["code"] == BusinessCode.CHAT_MESSAGE_NOT_FOUND

        assert b.receive_json()["type"] == "message-deleted"
        b.send_json({"type": "ping"})
        assert b.receive_json()["type"] == "pong"


def test_bad_frames_do_not_close_the_socket(client, seeder, party):
    owner = party[0]
    with client.websocket_connect(f"{WS_URL}?token={seeder.token(owner)}") as ws:
        ws.receive_json()
        ws.send_text("{not json")
        err = ws.receive_json()
        assert err["type"] == "error"
        assert err["data"]["code"] == BusinessCode.PARAM_VALIDATION_ERROR

        ws.send_json({"type": "teleport", "tripId": 1})
        err = ws.receive_json()
        assert err["data"]["event"] == "teleport"

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"


def test_disconnect_cleans_up_rooms(client, seeder, party):
    owner, member, _, trip = party
    with client.websocket_connect(f"{WS_URL}?token={seeder.token(member)}") as b:
        b.receive_json()
        with client.websocket_connect(f"{WS_URL}?token={seeder.token(owner)}") as a:
            a.receive_json()
            _join(a, trip.id)
            _join(b, trip.id)
        _wait_for_connections(1)

        members = client.portal.call(_room_members, f"trip_{trip.id}")
        assert len(members) == 1

        b.send_json({"type": "send-text", "tripId": trip.id, "body": "anyone?"})
        assert b.receive_json()["type"] == "message-created"


async def _room_members(room: str) -> list[str]:
    return await app.state.realtime_sessions.connections.room_members(room)


def test_unexpected_failure_closes_socket_with_internal_error(client, seeder, party, monkeypatch):
    owner = party[0]

    async def _explode(self, conn_id, raw):
        raise RuntimeError("registry corrupted")

    with client.websocket_connect(f"{WS_URL}?token={seeder.token(owner)}") as ws:
        ws.receive_json()
        monkeypatch.setattr(RealtimeSessionManager, "handle_event", _explode)
        ws.send_json({"type": "ping"})
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()
    assert exc.value.code == 1011
    _wait_for_connections(0)


def test_idle_ping_goes_through_send_queue(client, seeder, party, monkeypatch):
    owner = party[0]
    queued = []
    original_send_to = ConnectionManager.send_to

    async def _recording_send_to(self, conn_id, envelope):
        queued.append(envelope.type)
        await original_send_to(self, conn_id, envelope)

    monkeypatch.setattr(ConnectionManager, "send_to", _recording_send_to)
    monkeypatch.setattr(settings, "REALTIME_WS_IDLE_PING_INTERVAL_S", 0.05)

    with client.websocket_connect(f"{WS_URL}?token={seeder.token(owner)}") as ws:
        assert ws.receive_json()["type"] == "connected"
        ping = ws.receive_json()
        assert ping["type"] == "ping"
        assert ping["ts"].endswith("Z")
        ws.send_json({"type": "pong"})
        ws.send_json({"type": "ping"})
        frame = ws.receive_json()
        while frame["type"] == "ping":
            frame = ws.receive_json()
        assert frame["type"] == "pong"

    assert "ping" in queued
