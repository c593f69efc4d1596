"""Tests for the realtime test trigger and the comments WebSocket."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from comment_system.notifications.publisher import NullEventPublisher


class TestRealtimeTestEndpoint:
    """Tests for GET /v1/realtime/test."""

    def test_publishes_hello_world(self, client: TestClient, publisher) -> None:
        response = client.get("/v1/realtime/test")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["receivers"] == 1
        assert body["payload"]["message"] == "hello world"
        assert "ts" in body["payload"]
        assert isinstance(body["duration_ms"], float | int)

        channel, event, payload = publisher.events[-1]
        assert channel == "comments"
        assert event == "comment:created"
        assert payload == body["payload"]

    def test_unavailable_without_redis(self, app: FastAPI, client: TestClient) -> None:
        app.state.event_publisher = NullEventPublisher()

        response = client.get("/v1/realtime/test")

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "publisher_disabled"


class TestCommentsWebSocket:
    """Tests for WS /ws/comments (no Redis: connection and keep-alive only)."""

    def test_connect_and_ping(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/comments") as websocket:
            assert websocket.receive_json() == {"type": "connected", "channel": "comments"}

            websocket.send_json({"type": "ping"})

            assert websocket.receive_json() == {"type": "pong"}

    def test_invalid_token_still_connects(self, client: TestClient) -> None:
        with client.websocket_connect("/ws/comments?token=garbage") as websocket:
            assert websocket.receive_json()["type"] == "connected"
