"""Request IDs carried in the context and echoed in a response header."""

import uuid
from dataclasses import dataclass

from madhatter.context import Context, with_value
from madhatter.handler import Constructor, Handler
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter


class _RequestIDKey:
    """Private context key type; no other module can collide with it."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "REQUEST_ID_KEY"


REQUEST_ID_KEY = _RequestIDKey()

# Incoming IDs longer than this are replaced with a generated one.
MAX_REQUEST_ID_LENGTH = 200


def get_request_id(ctx: Context) -> str | None:
    """Return the request ID stored by ``request_id()``, if any."""
    return ctx.value(REQUEST_ID_KEY)


@dataclass(frozen=True, slots=True)
class RequestID:
    """Stores a request ID in the context and sets it on the response.

    An ID sent by the client in *header* is reused when present and sane;
    otherwise a random hex ID is generated.
    """

    inner: Handler
    header: str = "X-Request-ID"

    def serve_http(self, ctx: Context, w: ResponseWriter, r: Request) -> None:
        rid = r.headers.get(self.header)
        if not rid or len(rid) > MAX_REQUEST_ID_LENGTH or not rid.isprintable():
            rid = uuid.uuid4().hex
        w.headers.set(self.header, rid)
        self.inner.serve_http(with_value(ctx, REQUEST_ID_KEY, rid), w, r)


def request_id(header: str = "X-Request-ID") -> Constructor:
    """Constructor for ``RequestID``."""

    def construct(inner: Handler) -> Handler:
        return RequestID(inner, header)

    return construct
