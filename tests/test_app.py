"""Tests for the HTTP surface, driven through FastAPI's TestClient."""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from flight_booking.app import create_app
from flight_booking.dialog import WELCOME_PROMPT, get_active_sessions
from flight_booking.models.booking import SlotHint


class FakeSettings:
    def __init__(self, admin_api_key="", debug=False):
        self.admin_api_key = admin_api_key
        self.debug = debug


ADMIN = {"Authorization": "Bearer secret"}


@pytest.fixture(autouse=True)
def empty_registry(monkeypatch):
    monkeypatch.setattr("flight_booking.dialog._active_sessions", {})


@pytest.fixture
def admin_key(monkeypatch):
    monkeypatch.setattr("flight_booking.auth.settings", FakeSettings(admin_api_key="secret"))


@pytest.fixture
def client(services, extractor):
    departure = date.today() + timedelta(days=30)
    extractor.add(SlotHint.DESTINATION, "Paris", dst="CDG")
    extractor.add(SlotHint.DATE, "next month", startDate=departure.isoformat())
    extractor.add(SlotHint.SOURCE, "JFK", src="JFK")
    with TestClient(create_app(services)) as c:
        yield c


def _start(client) -> str:
    resp = client.post("/api/conversations")
    assert resp.status_code == 200
    return resp.json()["session_id"]


def _say(client, session_id, **body) -> dict:
    resp = client.post(f"/api/conversations/{session_id}/turns", json=body)
    assert resp.status_code == 200
    return resp.json()


class TestHealth:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["conversations"] == 0
        assert body["airports_loaded"] is False


class TestConversation:
    def test_start(self, client):
        body = client.post("/api/conversations").json()
        assert body["stage"] == "collect_destination"
        assert body["done"] is False
        assert body["events"] == [{"type": "message", "text": WELCOME_PROMPT}]

    def test_full_conversation(self, client):
        session_id = _start(client)

        assert _say(client, session_id, text="Paris")["stage"] == "collect_date"
        assert _say(client, session_id, text="next month")["stage"] == "collect_source"
        body = _say(client, session_id, text="JFK")
        assert body["stage"] == "confirm"
        assert body["events"][0]["text"].startswith("You would like to fly from")

        body = _say(client, session_id, text="yes")
        assert body["stage"] == "select"
        [menu] = body["events"]
        assert menu["type"] == "offer_menu"
        cheapest = menu["cards"][0]
        assert cheapest["airline"] == "Delta Airlines"
        assert cheapest["price"] == "210.50"

        body = _say(client, session_id, selected_flight=cheapest["flight_id"])
        assert body["done"] is True
        assert body["events"][-1] == {"type": "end_of_conversation"}
        assert session_id not in get_active_sessions()

    def test_unknown_conversation(self, client):
        resp = client.post("/api/conversations/nope/turns", json={"text": "hi"})
        assert resp.status_code == 404

    def test_empty_turn_rejected(self, client):
        session_id = _start(client)
        resp = client.post(f"/api/conversations/{session_id}/turns", json={})
        assert resp.status_code == 422


class TestAdmin:
    def test_list_requires_token(self, client, admin_key):
        assert client.get("/api/conversations").status_code == 401

    def test_list_conversations(self, client, admin_key):
        session_id = _start(client)
        body = client.get("/api/conversations", headers=ADMIN).json()
        assert body["count"] == 1
        assert body["conversations"][0]["session_id"] == session_id

    def test_conversation_detail(self, client, admin_key):
        session_id = _start(client)
        _say(client, session_id, text="Paris")

        body = client.get(f"/api/conversations/{session_id}", headers=ADMIN).json()

        assert body["slots"]["destination"]["iata"] == "CDG"
        assert [e["type"] for e in body["event_log"]] == ["turn", "extraction", "transition"]

    def test_detail_not_found(self, client, admin_key):
        assert client.get("/api/conversations/nope", headers=ADMIN).status_code == 404

    def test_trace_rejects_bad_token(self, client, admin_key):
        session_id = _start(client)
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/api/conversations/{session_id}/trace?token=wrong"):
                pass
        assert exc_info.value.code == 4001

    def test_trace_unknown_conversation(self, client, admin_key):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/conversations/nope/trace?token=secret"):
                pass
        assert exc_info.value.code == 4004
