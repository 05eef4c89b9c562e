import httpx
import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from mentee_portal import main
from mentee_portal.api.client import MentorApiClient

from conftest import BASE_URL, TOKEN, slot_record


@pytest.fixture
def test_client(fake_api, session_file, monkeypatch):
    fake_api.slots_by_day = {"Monday": [slot_record("s1", "m1", "9:00 AM", "10:00 AM")]}
    monkeypatch.setattr(
        main, "client", MentorApiClient(BASE_URL, transport=httpx.MockTransport(fake_api.handler))
    )
    monkeypatch.setattr(main.settings, "token_path", str(session_file))
    monkeypatch.setattr(main.settings, "availability_strategy", "per_day")
    with TestClient(main.app) as client:
        yield client


def test_health(test_client):
    assert test_client.get("/health").json() == {"status": "ok"}


def test_dashboard_flow(test_client, fake_api):
    started = test_client.post("/session/start").json()
    session_id = started["session_id"]
    assert started["ws_url"].endswith(f"/session/{session_id}/events")
    assert started["page"]["redirect"] == "/login"

    page = test_client.post(
        f"/session/{session_id}/sign-in", json={"token": TOKEN, "user": {"name": "Sam"}}
    ).json()
    assert page["session"]["greeting"] == "Welcome, Sam!"
    assert page["redirect"] is None

    page = test_client.post(f"/session/{session_id}/book", json={"slot_id": "s1"}).json()
    assert page["is_booked"] is True
    assert page["days"][0]["mentors"][0]["slots"][0]["action"] == "Booked"
    assert [notice["message"] for notice in page["notices"]] == ["Session booked successfully!"]

    page = test_client.post(f"/session/{session_id}/date", json={"date": "Monday"}).json()
    assert [section["day"] for section in page["days"]] == ["Monday"]

    page = test_client.post(f"/session/{session_id}/bookings/refresh").json()
    assert len(page["bookings"]) == 1

    page = test_client.post(f"/session/{session_id}/sign-out").json()
    assert page["bookings"] == []

    assert test_client.delete(f"/session/{session_id}").json() == {"session_id": session_id, "closed": True}
    assert test_client.get(f"/session/{session_id}/dashboard").status_code == 404


def test_unknown_session_is_404(test_client):
    assert test_client.post("/session/nope/book", json={"slot_id": "s1"}).status_code == 404


def test_events_socket_answers_ping(test_client):
    session_id = test_client.post("/session/start").json()["session_id"]

    with test_client.websocket_connect(f"/session/{session_id}/events") as websocket:
        status = websocket.receive_json()
        assert status["type"] == "status"
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json()["type"] == "pong"


def test_events_socket_rejects_unknown_session(test_client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with test_client.websocket_connect("/session/nope/events") as websocket:
            websocket.receive_json()

    assert excinfo.value.code == 1008


class DeadSocket:
    async def send_json(self, payload):
        raise RuntimeError("socket already closed")


@pytest.mark.asyncio
async def test_broadcast_drops_dead_sockets():
    manager = main.ConnectionManager()
    dead = DeadSocket()
    manager.active_connections["s1"] = [dead]

    await manager.broadcast("s1", {"type": "notice", "payload": {}})

    assert manager.active_connections["s1"] == []
