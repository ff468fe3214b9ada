"""Test utilities for handlers and chains.

Drive a composed handler directly, with no server and no ASGI::

    from madhatter.testing import ResponseRecorder, new_request

    w = ResponseRecorder()
    Chain(request_id()).then_func(app).serve_http(w, new_request("GET", "/"))
    assert w.status == 200
"""

from collections.abc import Iterable, Mapping

from madhatter.http.request import Request
from madhatter.http.writer import BufferedResponseWriter


class ResponseRecorder(BufferedResponseWriter):
    """A ``ResponseWriter`` that records the response for assertions.

    ``headers`` are the live headers; ``result_headers`` are the ones that
    were in place when the status was written.
    """

    __slots__ = ()

    def header(self, name: str) -> str | None:
        """First recorded value of response header *name*."""
        return self.result_headers.get(name)


def new_request(
    method: str = "GET",
    path: str = "/",
    *,
    headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
    body: bytes | str = b"",
) -> Request:
    """Build a ``Request`` for a test. *path* may include a query string."""
    return Request.build(method, path, headers=headers, body=body)
