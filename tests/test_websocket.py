"""Tests for the case events WebSocket."""

from carefile.routers import events


def test_websocket_rejects_invalid_case(client):
    with client.websocket_connect("/ws/cases/nonexistent-case-id") as ws:
        data = ws.receive_json()
        assert data["type"] == "error"
        assert "not found" in data["message"].lower()


def test_websocket_pings_idle_clients(client, monkeypatch):
    monkeypatch.setattr(events, "PING_INTERVAL", 0.05)
    patient = client.post("/api/patients", json={"fullName": "Jean Dupont"}).json()
    case = client.post("/api/cases", json={"patientId": patient["id"]}).json()

    with client.websocket_connect(f"/ws/cases/{case['id']}") as ws:
        assert ws.receive_json() == {"type": "ping"}
