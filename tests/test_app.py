import json

import pytest
from fastapi.testclient import TestClient

import booking_chat.app as app_module
from booking_chat.app import app


@pytest.fixture
def client():
    """Create a FastAPI TestClient for testing the API."""
    return TestClient(app)


def test_root_endpoint(client):
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


def test_chat_starts_flow_without_context(client):
    response = client.post("/chat", json={"message": "đặt lịch"})
    assert response.status_code == 200

    body = response.json()
    assert body["done"] is False
    assert body["context"]["flow"] == "collecting"
    assert body["context"]["need"] == "hospital"
    assert "Bệnh viện Trung ương" in body["response"]


def test_chat_round_trips_context(client):
    first = client.post("/chat", json={"message": "đặt lịch"}).json()
    second = client.post("/chat", json={"message": "1", "context": first["context"]}).json()

    assert second["context"]["need"] == "department"
    assert second["context"]["data"]["hospital_id"] == "BV01"
    assert "Tim mạch" in second["response"]


def test_chat_rejects_bad_context(client):
    response = client.post("/chat", json={"message": "1", "context": {"flow": "paused"}})
    assert response.status_code == 422


def test_websocket_contract(client):
    """Test the WebSocket contract with proper JSON message shape."""
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text(json.dumps({
            "thread_id": "test_websocket_contract",
            "token": "test_token",
            "message": "đặt lịch khám",
        }))
        response_data = json.loads(websocket.receive_text())

        assert response_data["thread_id"] == "test_websocket_contract"
        assert "Bệnh viện Trung ương" in response_data["message"]
        assert response_data["done"] is False


def test_error_handling(client):
    """Malformed frames get an error and the socket stays usable."""
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text(json.dumps({"message": "Hello"}))
        response_data = json.loads(websocket.receive_text())
        assert "missing" in response_data["error"].lower()

        websocket.send_text("not json")
        response_data = json.loads(websocket.receive_text())
        assert "json" in response_data["error"].lower()

        websocket.send_text(json.dumps({"thread_id": "err", "token": "t", "message": "xin chào"}))
        response_data = json.loads(websocket.receive_text())
        assert "đặt lịch" in response_data["message"]


def test_unexpected_failure_sends_internal_error(client, monkeypatch):
    async def broken_handle(thread_id, message):
        raise RuntimeError("router exploded")

    monkeypatch.setattr(app_module.router, "handle", broken_handle)
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text(json.dumps({"thread_id": "boom", "token": "t", "message": "đặt lịch"}))
        response_data = json.loads(websocket.receive_text())

    assert response_data["error"] == "Internal error: router exploded"


def test_catalog_closed_on_shutdown(monkeypatch):
    closed = []

    class ClosingCatalog:
        async def aclose(self):
            closed.append(True)

    monkeypatch.setattr(app_module, "catalog", ClosingCatalog())
    with TestClient(app):
        assert closed == []
    assert closed == [True]
