"""API — WebSocket command round trips and the event branding REST endpoints.

Design Decisions:
    - REVEAL_DELAY_SECONDS=0 (conftest) so ROLLING and REVEALED snapshots
      arrive back to back on the socket
    - Each test uses its own session id; the app keeps one manager per lifespan
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from main import app
from tests.conftest import ADMIN_SECRET


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_id():
    return f"s-{uuid4().hex[:8]}"


def _receive_until(ws, event_type, limit=10):
    for _ in range(limit):
        message = ws.receive_json()
        if message["type"] == event_type:
            return message
    raise AssertionError(f"{event_type} not received")


def _snapshot_with_status(ws, status, limit=10):
    for _ in range(limit):
        message = _receive_until(ws, "STATE_SNAPSHOT")
        if message["session"]["status"] == status:
            return message["session"]
    raise AssertionError(f"no {status} snapshot")


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_join_and_draw_over_websocket(client, session_id):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "JOIN", "v": 1, "session_id": session_id,
                      "external_id": "u1", "display_name": "Alice", "avatar_ref": "a.png"})
        snapshot = _receive_until(ws, "STATE_SNAPSHOT")["session"]
        assert [p["external_id"] for p in snapshot["participants"]] == ["u1"]
        joined = _receive_until(ws, "JOINED")
        assert joined["participant"]["display_name"] == "Alice"

        ws.send_json({"type": "START_DRAW", "v": 1, "session_id": session_id})
        rolling = _snapshot_with_status(ws, "ROLLING")
        assert rolling["current_winner"]["external_id"] == "u1"
        revealed = _snapshot_with_status(ws, "REVEALED")
        assert [w["external_id"] for w in revealed["current_round_winners"]] == ["u1"]

        ws.send_json({"type": "START_DRAW", "v": 1, "session_id": session_id})
        notice = _receive_until(ws, "NO_ELIGIBLE_PARTICIPANTS")
        assert notice["session_id"] == session_id


def test_viewer_receives_broadcast(client, session_id):
    with client.websocket_connect("/ws") as screen, client.websocket_connect("/ws") as phone:
        screen.send_json({"type": "REQUEST_STATE", "v": 1, "session_id": session_id})
        initial = _receive_until(screen, "STATE_SNAPSHOT")["session"]
        assert initial["participants"] == []

        phone.send_json({"type": "JOIN", "v": 1, "session_id": session_id,
                         "external_id": "u1", "display_name": "Bob"})
        update = _receive_until(screen, "STATE_SNAPSHOT")["session"]
        assert [p["display_name"] for p in update["participants"]] == ["Bob"]


def test_malformed_join_is_rejected(client, session_id):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "JOIN", "v": 1, "session_id": session_id, "display_name": "Ghost"})
        rejected = _receive_until(ws, "COMMAND_REJECTED")

    assert rejected["command"] == "JOIN"
    assert rejected["reason"] == "MALFORMED_JOIN"


def test_invalid_payload_keeps_socket_open(client, session_id):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert _receive_until(ws, "COMMAND_REJECTED")["reason"] == "INVALID_COMMAND"

        ws.send_json({"type": "TELEPORT", "v": 1})
        rejected = _receive_until(ws, "COMMAND_REJECTED")
        assert rejected["command"] == "TELEPORT"

        ws.send_json({"type": "START_DRAW", "v": 2, "session_id": session_id})
        assert _receive_until(ws, "COMMAND_REJECTED")["reason"] == "INVALID_COMMAND"

        ws.send_json({"type": "REQUEST_STATE", "v": 1, "session_id": session_id})
        assert _receive_until(ws, "STATE_SNAPSHOT")["session"]["session_id"] == session_id


def test_privileged_command_requires_capability(client, session_id):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "JOIN", "v": 1, "session_id": session_id, "external_id": "u1"})
        _receive_until(ws, "JOINED")

        ws.send_json({"type": "FULL_RESET", "v": 1, "session_id": session_id})
        denied = _receive_until(ws, "COMMAND_REJECTED")
        assert denied["reason"] == "UNAUTHORIZED"

        ws.send_json({"type": "AUTHENTICATE", "v": 1, "secret": "wrong"})
        assert _receive_until(ws, "AUTH_RESULT")["granted"] is False

        ws.send_json({"type": "AUTHENTICATE", "v": 1, "secret": ADMIN_SECRET})
        auth = _receive_until(ws, "AUTH_RESULT")
        assert auth["granted"] is True

        ws.send_json({"type": "FULL_RESET", "v": 1, "session_id": session_id,
                      "capability": auth["capability"]})
        snapshot = _receive_until(ws, "STATE_SNAPSHOT")["session"]
        assert snapshot["participants"] == []


def test_admin_adds_and_removes_bots(client, session_id):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "AUTHENTICATE", "v": 1, "secret": ADMIN_SECRET})
        token = _receive_until(ws, "AUTH_RESULT")["capability"]

        ws.send_json({"type": "ADD_TEST_ACCOUNTS", "v": 1, "session_id": session_id,
                      "capability": token, "count": 4})
        assert _receive_until(ws, "COMMAND_ACK")["result"] == {"added": 4}

        ws.send_json({"type": "REMOVE_TEST_ACCOUNTS", "v": 1, "session_id": session_id,
                      "capability": token})
        assert _receive_until(ws, "COMMAND_ACK")["result"] == {"removed": 4}


def _admin_headers():
    return {"X-Admin-Secret": ADMIN_SECRET}


def test_event_crud(client):
    created = client.post("/api/events", json={"title": "尾牙", "background_url": "bg.jpg"},
                          headers=_admin_headers())
    assert created.status_code == 201
    event = created.json()
    assert len(event["id"]) == 6

    fetched = client.get(f"/api/events/{event['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "尾牙"

    assert client.delete(f"/api/events/{event['id']}", headers=_admin_headers()).status_code == 204
    assert client.get(f"/api/events/{event['id']}").status_code == 404
    assert client.delete(f"/api/events/{event['id']}", headers=_admin_headers()).status_code == 404


def test_event_admin_endpoints_require_secret(client):
    assert client.post("/api/events", json={"title": "x"}).status_code == 403
    assert client.post("/api/events", json={"title": "x"},
                       headers={"X-Admin-Secret": "wrong"}).status_code == 403
    assert client.delete("/api/events/ABCDEF").status_code == 403


def test_deleting_event_discards_its_draw_session(client):
    event = client.post("/api/events", json={"title": "Gala"}, headers=_admin_headers()).json()
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "JOIN", "v": 1, "session_id": event["id"], "external_id": "u1"})
        _receive_until(ws, "JOINED")

    manager = app.state.session_manager
    assert manager.repository.get(event["id"]) is not None

    client.delete(f"/api/events/{event['id']}", headers=_admin_headers())

    assert manager.repository.get(event["id"]) is None
