import asyncio

import pytest
from fastapi.testclient import TestClient

from main import app
from shared.codes import BusinessCode


@pytest.fixture
def client(sync_db):
    with TestClient(app) as c:
        yield c


def _auth(seeder, user) -> dict:
    return {"Authorization": f"Bearer {seeder.token(user)}"}


def test_health_reports_connection_count(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == 0
    assert body["data"] == {"status": "healthy", "connections": 0}


def test_history_shape_for_participant(client, seeder):
    owner = asyncio.run(seeder.user("Owner"))
    member = asyncio.run(seeder.user("Member"))
    trip = asyncio.run(seeder.trip(owner, [member]))
    asyncio.run(seeder.message(trip, owner, "first"))
    asyncio.run(seeder.message(trip, member, "second"))

    resp = client.get(f"/api/v1/chat/{trip.id}/messages", headers=_auth(seeder, member))

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["count"] == 2
    first, second = data["items"]
    assert first["body"] == "first"
    assert second["body"] == "second"
    assert first["tripId"] == trip.id
    assert first["kind"] == "text"
    assert first["createdAt"].endswith("Z")
    assert first["sender"] == {
        "id": owner.id,
        "name": "Owner",
        "contact": owner.email,
        "avatar": owner.avatar_url,
    }
    assert "trip_id" not in first


def test_history_requires_authentication(client, seeder):
    owner = asyncio.run(seeder.user("Owner"))
    trip = asyncio.run(seeder.trip(owner))

    resp = client.get(f"/api/v1/chat/{trip.id}/messages")
    assert resp.status_code == 401
    assert resp.json()["code"] == BusinessCode.UNAUTHORIZED

    resp = client.get(f"/api/v1/chat/{trip.id}/messages", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


def test_history_forbidden_for_outsider_and_missing_trip(client, seeder):
    owner = asyncio.run(seeder.user("Owner"))
    outsider = asyncio.run(seeder.user("Outsider"))
    trip = asyncio.run(seeder.trip(owner))

    resp = client.get(f"/api/v1/chat/{trip.id}/messages", headers=_auth(seeder, outsider))
    assert resp.status_code == 403
    body = resp.json()
    assert body["code"] == BusinessCode.TRIP_ACCESS_DENIED
    assert body["error"]["type"] == "AuthorizationError"

    resp = client.get(f"/api/v1/chat/{trip.id + 50}/messages", headers=_auth(seeder, owner))
    assert resp.status_code == 404
    assert resp.json()["code"] == BusinessCode.TRIP_NOT_FOUND


def test_retract_over_http(client, seeder):
    owner = asyncio.run(seeder.user("Owner"))
    member = asyncio.run(seeder.user("Member"))
    trip = asyncio.run(seeder.trip(owner, [member]))
    msg = asyncio.run(seeder.message(trip, member, "delete me"))
    url = f"/api/v1/chat/{trip.id}/messages/{msg.id}"

    resp = client.delete(url, headers=_auth(seeder, owner))
    assert resp.status_code == 403
    assert resp.json()["code"] == BusinessCode.MESSAGE_OWNERSHIP_REQUIRED

    resp = client.delete(url, headers=_auth(seeder, member))
    assert resp.status_code == 200
    assert resp.json()["data"] == {"messageId": msg.id, "tripId": trip.id}
    assert resp.json()["message"] == "Message deleted"

    resp = client.delete(url, headers=_auth(seeder, member))
    assert resp.status_code == 404
    assert resp.json()["code"] == BusinessCode.CHAT_MESSAGE_NOT_FOUND
    assert asyncio.run(seeder.count_messages(trip)) == 0


def test_http_retract_does_not_notify_room(client, seeder):
    owner = asyncio.run(seeder.user("Owner"))
    trip = asyncio.run(seeder.trip(owner))
    msg = asyncio.run(seeder.message(trip, owner, "quiet"))
    token = seeder.token(owner)

    with client.websocket_connect(f"/api/v1/ws?token={token}") as ws:
        assert ws.receive_json()["type"] == "connected"
        ws.send_json({"type": "join-room", "tripId": trip.id})
        assert ws.receive_json()["type"] == "room-joined"

        resp = client.delete(
            f"/api/v1/chat/{trip.id}/messages/{msg.id}",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 200

        # the next frame is the pong, so nothing was pushed for the delete
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"
