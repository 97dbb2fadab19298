"""Tests for API middleware."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from polyquery.api.middleware import RequestContextMiddleware, get_request_id, request_id_var


class TestRequestIdVar:
    """Tests for request_id context variable."""

    def test_get_request_id_returns_current_value(self) -> None:
        """Should return current request ID from context."""
        token = request_id_var.set("test-request-123")
        try:
            assert get_request_id() == "test-request-123"
        finally:
            request_id_var.reset(token)

    def test_get_request_id_returns_default_when_unset(self) -> None:
        """Should return empty string when not set."""
        assert get_request_id() == ""


class TestRequestContextMiddleware:
    """Tests for RequestContextMiddleware."""

    def _app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestContextMiddleware)

        @app.get("/echo")
        async def echo() -> dict:
            return {"request_id": get_request_id()}

        return app

    def test_propagates_incoming_request_id(self) -> None:
        """X-Request-ID is reused and echoed back."""
        client = TestClient(self._app())
        response = client.get("/echo", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"
        assert response.json() == {"request_id": "abc-123"}

    def test_generates_request_id(self) -> None:
        """A request id is generated when none is sent."""
        client = TestClient(self._app())
        response = client.get("/echo")

        generated = response.headers["X-Request-ID"]
        assert generated
        assert response.json()["request_id"] == generated
        assert "X-Response-Time-MS" in response.headers

    def test_blank_request_id_replaced(self) -> None:
        """An empty X-Request-ID header is treated as missing."""
        client = TestClient(self._app())
        response = client.get("/echo", headers={"X-Request-ID": ""})

        assert response.headers["X-Request-ID"]
        assert response.json()["request_id"] == response.headers["X-Request-ID"]
