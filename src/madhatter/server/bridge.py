"""ASGI bridge -- mounts a transport handler on any ASGI server.

The only component that touches raw ASGI. It reads the whole request
body, builds a ``Request``, runs the (synchronous) handler in a worker
thread, and sends the buffered response back through ``send()``.

Usage::

    from madhatter import ASGIAdapter, Chain
    from madhatter.middleware import access_log, recoverer

    app = ASGIAdapter(Chain(access_log(), recoverer()).then_func(index))
    # uvicorn module:app
"""

import logging
import traceback

import anyio.to_thread

from madhatter._internal.asgi import (
    HTTP_DISCONNECT,
    LIFESPAN_SHUTDOWN,
    LIFESPAN_STARTUP,
    Receive,
    Scope,
    Send,
    lifespan_complete,
)
from madhatter.config import BridgeConfig
from madhatter.handler import TransportHandler
from madhatter.http.request import Request
from madhatter.http.writer import BufferedResponseWriter, http_error
from madhatter.server.sender import send_response

logger = logging.getLogger("madhatter.server")


class _BodyTooLarge(Exception):  # noqa: N818 -- internal control flow
    pass


class _ClientDisconnected(Exception):  # noqa: N818 -- internal control flow
    pass


class ASGIAdapter:
    """ASGI 3 application wrapping a ``TransportHandler``.

    Unrecovered exceptions from the handler are logged and answered with
    ``500 Internal Server Error`` (the traceback when ``config.debug``).
    Bodies above ``config.max_content_length`` are answered with 413
    without calling the handler.
    """

    __slots__ = ("config", "handler")

    def __init__(self, handler: TransportHandler, config: BridgeConfig | None = None) -> None:
        self.handler = handler
        self.config = config or BridgeConfig()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        try:
            body = await self._read_body(scope, receive)
        except _BodyTooLarge:
            writer = BufferedResponseWriter()
            http_error(writer, "Request Entity Too Large", 413)
            await send_response(writer, send)
            return
        except _ClientDisconnected:
            logger.debug("client disconnected before the request body was read")
            return

        request = Request.from_asgi(scope, body)
        writer = await self._run_handler(request)
        await send_response(writer, send, head=request.method == "HEAD")

    async def _run_handler(self, request: Request) -> BufferedResponseWriter:
        writer = BufferedResponseWriter()
        try:
            await anyio.to_thread.run_sync(self.handler.serve_http, writer, request)
        except Exception:
            logger.exception("500 %s %s", request.method, request.path)
            # Nothing has been sent yet, so the partial response is dropped.
            writer = BufferedResponseWriter()
            message = traceback.format_exc().rstrip() if self.config.debug else "Internal Server Error"
            http_error(writer, message, 500)
        return writer

    async def _read_body(self, scope: Scope, receive: Receive) -> bytes:
        limit = self.config.max_content_length
        for name, value in scope.get("headers", ()):
            if name.lower() == b"content-length":
                try:
                    declared = int(value)
                except ValueError:
                    break
                if declared > limit:
                    raise _BodyTooLarge
                break

        chunks: list[bytes] = []
        size = 0
        while True:
            message = await receive()
            if message["type"] == HTTP_DISCONNECT:
                raise _ClientDisconnected
            chunk = message.get("body", b"")
            if chunk:
                size += len(chunk)
                if size > limit:
                    raise _BodyTooLarge
                chunks.append(chunk)
            if not message.get("more_body", False):
                return b"".join(chunks)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Acknowledge lifespan events. A bridge has nothing to start or stop."""
        while True:
            message = await receive()
            if message["type"] == LIFESPAN_STARTUP:
                await send(lifespan_complete(LIFESPAN_STARTUP))
            elif message["type"] == LIFESPAN_SHUTDOWN:
                await send(lifespan_complete(LIFESPAN_SHUTDOWN))
                return
