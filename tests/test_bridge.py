"""Tests for madhatter.server.bridge -- serving chains over ASGI."""

import logging
from typing import Any

import pytest

from madhatter.chain import Chain
from madhatter.config import BridgeConfig
from madhatter.context import Context
from madhatter.handler import TransportHandlerFunc
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter
from madhatter.server.bridge import ASGIAdapter


class _ASGICall:
    """Drive an ASGI app once and collect what it sends."""

    def __init__(self, messages: list[dict[str, Any]]) -> None:
        self._incoming = list(messages)
        self.sent: list[dict[str, Any]] = []

    async def receive(self) -> dict[str, Any]:
        if self._incoming:
            return self._incoming.pop(0)
        return {"type": "http.disconnect"}

    async def send(self, message: dict[str, Any]) -> None:
        self.sent.append(message)

    @property
    def status(self) -> int:
        return self.sent[0]["status"]

    @property
    def headers(self) -> dict[bytes, bytes]:
        return dict(self.sent[0]["headers"])

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.sent[1:])


def _scope(method: str = "GET", path: str = "/", headers: list | None = None) -> dict[str, Any]:
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": headers or [],
    }


async def _call(
    app: ASGIAdapter,
    scope: dict[str, Any],
    body_chunks: list[bytes] | None = None,
) -> _ASGICall:
    chunks = body_chunks or [b""]
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]
    call = _ASGICall(messages)
    await app(scope, call.receive, call.send)
    return call


def _echo(ctx: Context, w: ResponseWriter, r: Request) -> None:
    w.headers.set("X-Method", r.method)
    w.write(r.body or b"empty")


class TestASGIAdapter:
    async def test_runs_chain(self) -> None:
        app = ASGIAdapter(Chain().then_func(_echo))

        call = await _call(app, _scope())

        assert call.status == 200
        assert call.headers[b"x-method"] == b"GET"
        assert call.body == b"empty"

    async def test_reads_chunked_body(self) -> None:
        app = ASGIAdapter(Chain().then_func(_echo))

        call = await _call(app, _scope("POST"), [b"hel", b"lo"])

        assert call.body == b"hello"

    async def test_default_mux_404(self) -> None:
        call = await _call(ASGIAdapter(Chain().then(None)), _scope(path="/nowhere"))

        assert call.status == 404
        assert call.headers[b"content-type"] == b"text/plain; charset=utf-8"

    async def test_head_drops_body(self) -> None:
        app = ASGIAdapter(Chain().then_func(_echo))
        call = await _call(app, _scope("HEAD"))

        assert call.headers[b"content-length"] == b"5"
        assert call.body == b""

    async def test_handler_exception_becomes_500(self, caplog: pytest.LogCaptureFixture) -> None:
        def boom(ctx: Context, w: ResponseWriter, r: Request) -> None:
            w.write("partial")
            raise RuntimeError("boom")

        app = ASGIAdapter(Chain().then_func(boom))
        with caplog.at_level(logging.ERROR, logger="madhatter.server"):
            call = await _call(app, _scope(path="/explode"))

        assert call.status == 500
        assert call.body == b"Internal Server Error\n"
        assert "500 GET /explode" in caplog.text

    async def test_debug_500_includes_traceback(self) -> None:
        def boom(ctx: Context, w: ResponseWriter, r: Request) -> None:
            raise RuntimeError("kaboom")

        app = ASGIAdapter(Chain().then_func(boom), BridgeConfig(debug=True))
        call = await _call(app, _scope())

        assert call.status == 500
        assert b"RuntimeError: kaboom" in call.body

    async def test_body_over_limit_is_413(self) -> None:
        calls: list[str] = []
        app = ASGIAdapter(
            TransportHandlerFunc(lambda w, r: calls.append("called")),
            BridgeConfig(max_content_length=4),
        )

        call = await _call(app, _scope("POST"), [b"abc", b"def"])

        assert call.status == 413
        assert calls == []

    async def test_declared_length_over_limit_is_413(self) -> None:
        app = ASGIAdapter(
            TransportHandlerFunc(lambda w, r: None),
            BridgeConfig(max_content_length=4),
        )
        scope = _scope("POST", headers=[(b"content-length", b"100")])

        call = await _call(app, scope, [b""])

        assert call.status == 413

    async def test_disconnect_sends_nothing(self) -> None:
        app = ASGIAdapter(Chain().then_func(_echo))
        call = _ASGICall([{"type": "http.disconnect"}])

        await app(_scope("POST"), call.receive, call.send)

        assert call.sent == []

    async def test_context_cancelled_after_response(self) -> None:
        seen: list[Context] = []

        def app_fn(ctx: Context, w: ResponseWriter, r: Request) -> None:
            seen.append(ctx)

        await _call(ASGIAdapter(Chain().then_func(app_fn)), _scope())

        assert seen[0].cancelled

    async def test_lifespan(self) -> None:
        app = ASGIAdapter(Chain().then(None))
        call = _ASGICall([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])

        await app({"type": "lifespan"}, call.receive, call.send)

        assert [m["type"] for m in call.sent] == [
            "lifespan.startup.complete",
            "lifespan.shutdown.complete",
        ]

    async def test_ignores_other_scopes(self) -> None:
        app = ASGIAdapter(Chain().then(None))
        call = _ASGICall([])

        await app({"type": "websocket"}, call.receive, call.send)

        assert call.sent == []
