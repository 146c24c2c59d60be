"""Request logging middleware."""

from __future__ import annotations

import logging
from typing import Any

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from lib.request_log import RequestLogMiddleware, decode_body


def make_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestLogMiddleware)

    @app.post("/echo")
    async def echo(request: Request) -> Any:
        return await request.json()

    @app.get("/ping")
    async def ping() -> dict[str, str]:
        return {"pong": "ok"}

    return app


def _request_records(caplog: pytest.LogCaptureFixture) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.name == "lib.request_log"]


def test_body_is_logged_and_still_readable(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib.request_log")
    client = TestClient(make_app())

    response = client.post("/echo?room=42", json={"message": "hi"}, headers={"X-Trace": "abc"})

    assert response.json() == {"message": "hi"}
    (record,) = _request_records(caplog)
    assert record.levelname == "DEBUG"
    entry = record.args
    assert isinstance(entry, dict)
    assert entry["method"] == "POST"
    assert entry["path"] == "/echo?room=42"
    assert entry["body"] == {"message": "hi"}
    assert entry["headers"]["x-trace"] == "abc"


def test_request_without_body_logs_empty_body(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib.request_log")
    client = TestClient(make_app())

    assert client.get("/ping").status_code == 200
    (record,) = _request_records(caplog)
    assert record.args["body"] == {}  # type: ignore[index]


def test_nothing_logged_above_debug(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="lib.request_log")
    client = TestClient(make_app())

    assert client.post("/echo", json={"a": 1}).json() == {"a": 1}
    assert _request_records(caplog) == []


def test_decode_body() -> None:
    assert decode_body(b"", "application/json") == {}
    assert decode_body(b'{"a": 1}', "application/json; charset=utf-8") == {"a": 1}
    assert decode_body(b"a=1&b=", "application/x-www-form-urlencoded") == {"a": "1", "b": ""}
    assert decode_body(b"plain text", "text/plain") == "plain text"
    assert decode_body(b"{broken", "application/json") == "{broken"
