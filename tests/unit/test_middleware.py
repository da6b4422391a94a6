"""
Unit tests for middleware components.
"""

from __future__ import annotations

import pytest
import structlog
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from frontdesk.middleware import RequestIDMiddleware


@pytest.fixture
def client() -> TestClient:
    """Test client for an app that echoes the request id it sees."""
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)

    @app.get("/echo")
    async def echo(request: Request) -> dict[str, str]:
        bound = structlog.contextvars.get_contextvars().get("request_id", "")
        return {"state": request.state.request_id, "log_context": bound}

    return TestClient(app)


@pytest.mark.unit
def test_generated_request_id_in_header_state_and_log_context(client: TestClient) -> None:
    """Test that a generated UUID is exposed everywhere the request id is used."""
    response = client.get("/echo")

    assert response.status_code == 200
    request_id = response.headers["X-Request-ID"]
    assert len(request_id) == 36  # UUID length
    assert response.json() == {"state": request_id, "log_context": request_id}


@pytest.mark.unit
def test_incoming_request_id_is_reused(client: TestClient) -> None:
    """Test that a caller-supplied X-Request-ID is propagated unchanged."""
    response = client.get("/echo", headers={"X-Request-ID": "desk-42"})

    assert response.headers["X-Request-ID"] == "desk-42"
    assert response.json()["state"] == "desk-42"


@pytest.mark.unit
def test_request_id_unique_per_request(client: TestClient) -> None:
    assert client.get("/echo").headers["X-Request-ID"] != client.get("/echo").headers["X-Request-ID"]


@pytest.mark.unit
def test_request_id_unbound_after_request(client: TestClient) -> None:
    client.get("/echo")
    assert "request_id" not in structlog.contextvars.get_contextvars()
