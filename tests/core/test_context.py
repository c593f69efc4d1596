"""Tests for request context propagation and the request middleware."""

from fastapi import FastAPI, Response
from fastapi.testclient import TestClient

from comment_system.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    set_user_id,
)
from comment_system.core.logging import filter_sensitive_data
from comment_system.core.middleware import (
    SECURITY_HEADERS,
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
    extract_traceparent,
)


class TestRequestContext:
    """Tests for the context manager used outside HTTP requests."""

    def test_binds_and_restores(self) -> None:
        clear_context()

        with RequestContext(request_id="req-1", correlation_id="job-7"):
            assert get_context() == {"request_id": "req-1", "correlation_id": "job-7"}

        assert get_context() == {}

    def test_generates_request_id(self) -> None:
        clear_context()
        with RequestContext():
            assert get_request_id()

    def test_user_id_is_stringified(self) -> None:
        clear_context()
        set_user_id(123)
        assert get_context() == {"user_id": "123"}
        clear_context()


class TestMiddleware:
    """Tests for RequestContextMiddleware."""

    def _client(self) -> TestClient:
        app = FastAPI()
        app.add_middleware(RequestContextMiddleware, log_requests=False)

        @app.get("/ctx")
        async def ctx() -> dict[str, str]:
            return get_context()

        return TestClient(app)

    def test_echoes_incoming_request_id(self) -> None:
        response = self._client().get("/ctx", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"
        assert response.json()["request_id"] == "abc-123"

    def test_generates_request_id(self) -> None:
        response = self._client().get("/ctx")
        assert response.headers["X-Request-ID"]

    def test_trace_id_from_traceparent(self) -> None:
        response = self._client().get(
            "/ctx",
            headers={"traceparent": "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"},
        )
        assert response.json()["trace_id"] == "4bf92f3577b34da6a3ce929d0e0e4736"

    def test_extract_traceparent_malformed(self) -> None:
        assert extract_traceparent("garbage") is None
        assert extract_traceparent(None) is None


class TestSecurityHeaders:
    """Tests for SecurityHeadersMiddleware."""

    def _client(self) -> TestClient:
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware)

        @app.get("/plain")
        async def plain() -> dict[str, str]:
            return {"ok": "yes"}

        @app.get("/framed")
        async def framed() -> Response:
            return Response(headers={"X-Frame-Options": "DENY"})

        return TestClient(app)

    def test_adds_headers(self) -> None:
        response = self._client().get("/plain")

        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_keeps_route_values(self) -> None:
        response = self._client().get("/framed")
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_present_on_errors_of_full_app(self, client: TestClient) -> None:
        response = client.get("/v1/comments/not-a-uuid")

        assert response.status_code == 422
        assert response.headers["Referrer-Policy"] == "no-referrer"

class TestSensitiveDataFilter:
    def test_masks_secrets(self) -> None:
        event = filter_sensitive_data(
            None, "info", {"event": "login", "password": "hunter2", "email": "a@b.c"}
        )
        assert event["password"] != "hunter2"
        assert event["email"] == "a@b.c"
