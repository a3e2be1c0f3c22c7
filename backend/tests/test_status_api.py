"""Tests for the connection endpoints (/api/status, /api/qr, /api/pairing-code).

Coverage breakdown
~~~~~~~~~~~~~~~~~~
* status       – cold start, after QR, after ready
* qr           – 404 before the challenge, payload afterwards
* pairing code – validation, success, already connected
* app          – health check, error envelope for validation failures
"""
import asyncio

from fastapi.testclient import TestClient

from chatbridge.main import create_app
from chatbridge.session import InMemorySession


class TestStatus:
    def test_cold_start(self, api_client):
        response = api_client.get("/api/status")
        assert response.status_code == 200
        assert response.json() == {
            "connected": False,
            "hasQr": False,
            "hasPairingCode": False,
            "state": "initializing",
        }

    def test_after_qr(self, api_client, session):
        api_client.portal.call(session.simulate_qr)
        data = api_client.get("/api/status").json()
        assert data["hasQr"] is True
        assert data["state"] == "awaiting_qr"

    def test_ready(self, ready_client):
        data = ready_client.get("/api/status").json()
        assert data == {"connected": True, "hasQr": False, "hasPairingCode": False, "state": "ready"}

    def test_auto_ready_session(self, bridge_config):
        app = create_app(bridge_config, session_factory=lambda: InMemorySession(auto_ready=True))
        with TestClient(app) as client:
            client.portal.call(_settle)
            assert client.get("/api/status").json()["connected"] is True


async def _settle() -> None:
    await asyncio.sleep(0.05)


class TestQr:
    def test_no_qr_yet(self, api_client):
        response = api_client.get("/api/qr")
        assert response.status_code == 404
        assert response.json() == {"error": "No QR available"}

    def test_qr_payload(self, api_client, session):
        api_client.portal.call(session.simulate_qr)
        response = api_client.get("/api/qr")
        assert response.status_code == 200
        assert response.json() == {"qr": "2@in-memory-session-qr"}

    def test_qr_cleared_when_ready(self, ready_client):
        assert ready_client.get("/api/qr").status_code == 404


class TestPairingCode:
    def test_missing_number(self, api_client):
        response = api_client.post("/api/pairing-code", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "phoneNumber required"}

    def test_short_number(self, api_client):
        response = api_client.post("/api/pairing-code", json={"phoneNumber": "12345"})
        assert response.status_code == 400
        assert "Invalid phone number" in response.json()["error"]

    def test_success(self, api_client, session):
        api_client.portal.call(session.simulate_qr)

        response = api_client.post("/api/pairing-code", json={"phoneNumber": "+54 9 11 1234-5678"})
        assert response.status_code == 200
        code = response.json()["code"]
        assert len(code) == 8

        assert api_client.get("/api/pairing-code").json() == {"code": code}
        status = api_client.get("/api/status").json()
        assert status["hasPairingCode"] is True
        assert status["hasQr"] is False

    def test_no_code_yet(self, api_client):
        response = api_client.get("/api/pairing-code")
        assert response.status_code == 404
        assert response.json() == {"error": "No pairing code available"}

    def test_already_connected(self, ready_client):
        response = ready_client.post("/api/pairing-code", json={"phoneNumber": "5491112345678"})
        assert response.status_code == 400
        assert response.json() == {"error": "Already connected"}

    def test_upstream_failure(self, api_client, session):
        session.failures["request_pairing_code"] = RuntimeError("rate limited")
        response = api_client.post("/api/pairing-code", json={"phoneNumber": "5491112345678"})
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to request pairing code: rate limited"}


class TestApp:
    def test_health(self, api_client):
        assert api_client.get("/health").json() == {"status": "ok"}
        assert api_client.get("/api/health").json() == {"status": "ok"}

    def test_validation_error_envelope(self, ready_client):
        response = ready_client.get("/api/chats", params={"type": "channels"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_unknown_route_envelope(self, api_client):
        response = api_client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_shutdown_destroys_session(self, bridge_config):
        session = InMemorySession(auto_ready=False)
        app = create_app(bridge_config, session_factory=lambda: session)
        with TestClient(app):
            pass
        assert session.destroyed
