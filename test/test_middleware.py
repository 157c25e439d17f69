"""
Tests for the structured logging middleware
"""

import json
import logging

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request as StarletteRequest

from pgdash.middleware.logging import (
    RequestIdFilter,
    StructuredFormatter,
    StructuredLoggingMiddleware,
    client_ip,
    request_id_var,
)


@pytest.fixture
def logged_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(StructuredLoggingMiddleware)

    @app.get("/ping")
    async def ping(request: Request):
        return {"request_id": request_id_var.get()}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def make_request(headers: dict[str, str], peer: str = "10.0.0.9") -> StarletteRequest:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return StarletteRequest(
        {"type": "http", "method": "GET", "path": "/", "headers": raw_headers, "client": (peer, 1234)}
    )


class TestStructuredLoggingMiddleware:
    @pytest.mark.asyncio
    async def test_request_id_visible_during_request(self, logged_app):
        async with AsyncClient(transport=ASGITransport(app=logged_app), base_url="http://test") as client:
            response = await client.get("/ping", headers={"X-Request-ID": "abc-123"})

        assert response.json() == {"request_id": "abc-123"}
        assert response.headers["X-Request-ID"] == "abc-123"
        assert request_id_var.get() == ""

    @pytest.mark.asyncio
    async def test_access_line_logged(self, logged_app, caplog):
        caplog.set_level(logging.INFO, logger="pgdash.access")
        async with AsyncClient(transport=ASGITransport(app=logged_app), base_url="http://test") as client:
            await client.get("/ping")
            await client.get("/missing")

        records = [r for r in caplog.records if r.name == "pgdash.access"]
        assert [(r.path, r.status_code) for r in records] == [("/ping", 200), ("/missing", 404)]
        assert records[0].levelno == logging.INFO
        assert records[1].levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_health_not_logged(self, logged_app, caplog):
        caplog.set_level(logging.INFO, logger="pgdash.access")
        async with AsyncClient(transport=ASGITransport(app=logged_app), base_url="http://test") as client:
            await client.get("/health")

        assert not [r for r in caplog.records if r.name == "pgdash.access"]


class TestClientIp:
    def test_forwarded_for_first_hop(self):
        assert client_ip(make_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})) == "203.0.113.5"

    def test_real_ip(self):
        assert client_ip(make_request({"X-Real-IP": " 198.51.100.7 "})) == "198.51.100.7"

    def test_peer_address(self):
        assert client_ip(make_request({})) == "10.0.0.9"


class TestStructuredFormatter:
    def test_json_line_with_extras(self):
        record = logging.LogRecord("pgdash.test", logging.WARNING, __file__, 1, "denied %s", ("x",), None)
        record.user_id = 7
        record.error_code = "AUTH_PERMISSION_DENIED"
        token = request_id_var.set("req-9")
        try:
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        payload = json.loads(StructuredFormatter().format(record))
        assert payload["message"] == "denied x"
        assert payload["level"] == "WARNING"
        assert payload["request_id"] == "req-9"
        assert payload["user_id"] == 7
        assert payload["error_code"] == "AUTH_PERMISSION_DENIED"
        assert "duration_ms" not in payload
