"""Response sink protocol and the in-memory writer behind it.

Handlers answer a request by side effects on a ``ResponseWriter``:
set headers, write the status line once, then write body bytes. There is
no return value and no in-band error channel.
"""

import logging
from http import HTTPStatus
from typing import Protocol, runtime_checkable

from madhatter.http.headers import MutableHeaders

logger = logging.getLogger("madhatter.http")

DEFAULT_CONTENT_TYPE = "text/plain; charset=utf-8"


@runtime_checkable
class ResponseWriter(Protocol):
    """The response sink every handler writes to.

    - ``headers`` may be modified until ``write_header`` is called.
    - ``write_header`` sends the status; later calls are ignored.
    - ``write`` sends body bytes, calling ``write_header(200)`` first if
      no status has been written yet.
    """

    @property
    def headers(self) -> MutableHeaders: ...

    def write_header(self, status: int) -> None: ...

    def write(self, data: bytes | str) -> int: ...


def status_text(code: int) -> str:
    """Reason phrase for *code*, or an empty string if unknown."""
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return ""


class BufferedResponseWriter:
    """A ``ResponseWriter`` that keeps the whole response in memory.

    Used by the ASGI bridge, which sends the buffered response once the
    handler returns, and by ``madhatter.testing.ResponseRecorder``.

    Header changes made after ``write_header`` do not affect the recorded
    response, matching a writer that has already put the status line and
    headers on the wire.
    """

    __slots__ = ("_body", "_headers", "_sent_headers", "status")

    def __init__(self) -> None:
        self._headers = MutableHeaders()
        self._sent_headers: MutableHeaders | None = None
        self._body = bytearray()
        self.status = HTTPStatus.OK.value

    @property
    def headers(self) -> MutableHeaders:
        return self._headers

    @property
    def wrote_header(self) -> bool:
        return self._sent_headers is not None

    def write_header(self, status: int) -> None:
        if not 100 <= status <= 999:
            msg = f"invalid HTTP status code {status}"
            raise ValueError(msg)
        if self._sent_headers is not None:
            logger.warning(
                "superfluous write_header(%d) call; status %d already written",
                status,
                self.status,
            )
            return
        self.status = status
        self._sent_headers = self._headers.copy()

    def write(self, data: bytes | str) -> int:
        if isinstance(data, str):
            data = data.encode("utf-8")
        if self._sent_headers is None:
            if data and "content-type" not in self._headers:
                self._headers.set("Content-Type", DEFAULT_CONTENT_TYPE)
            self.write_header(HTTPStatus.OK.value)
        self._body.extend(data)
        return len(data)

    # -- Recorded result --

    @property
    def result_headers(self) -> MutableHeaders:
        """Headers as written with the status line (live headers if none yet)."""
        if self._sent_headers is not None:
            return self._sent_headers
        return self._headers

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    @property
    def text(self) -> str:
        return self._body.decode("utf-8")

    def __repr__(self) -> str:
        return f"<BufferedResponseWriter {self.status} {len(self._body)} bytes>"


class StatusRecorder:
    """Wraps a ``ResponseWriter`` and remembers what went through it.

    Middleware hands this to the inner handler when it needs to know the
    status or whether anything was written (access logs, recovery).
    """

    __slots__ = ("bytes_written", "status", "wrapped", "wrote_header")

    def __init__(self, wrapped: ResponseWriter) -> None:
        self.wrapped = wrapped
        self.status = HTTPStatus.OK.value
        self.wrote_header = False
        self.bytes_written = 0

    @property
    def headers(self) -> MutableHeaders:
        return self.wrapped.headers

    def write_header(self, status: int) -> None:
        self.wrapped.write_header(status)
        if not self.wrote_header:
            self.status = status
            self.wrote_header = True

    def write(self, data: bytes | str) -> int:
        self.wrote_header = True
        n = self.wrapped.write(data)
        self.bytes_written += n
        return n


def http_error(w: ResponseWriter, message: str, status: int) -> None:
    """Reply with *message* as a plain-text error body.

    Does not end the handler; callers return after calling it.
    """
    w.headers.set("Content-Type", DEFAULT_CONTENT_TYPE)
    w.headers.set("X-Content-Type-Options", "nosniff")
    w.write_header(status)
    w.write(message + "\n")


def not_found(w: ResponseWriter, r: object = None) -> None:  # noqa: ARG001
    """Reply with ``404 page not found``."""
    http_error(w, "404 page not found", HTTPStatus.NOT_FOUND.value)
