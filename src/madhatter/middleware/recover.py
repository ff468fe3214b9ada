"""Recoverer -- turns exceptions from inner handlers into 500 responses.

Without it an exception unwinds through every constructor and the root
boundary up to the transport. Put it near the start of a chain so the
constructors inside it are covered::

    Chain(access_log(), recoverer(), auth).then(app)
"""

import logging
from dataclasses import dataclass

from madhatter.context import Context
from madhatter.handler import Constructor, Handler
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter, StatusRecorder, http_error

logger = logging.getLogger("madhatter.middleware")


@dataclass(frozen=True, slots=True)
class Recoverer:
    """Handler that calls ``inner`` and recovers any ``Exception`` it raises.

    If the inner handler had not written a status yet, a plain-text 500 is
    written. Otherwise the partial response stands. ``BaseException``s
    such as ``KeyboardInterrupt`` are not caught.
    """

    inner: Handler
    log: bool = True

    def serve_http(self, ctx: Context, w: ResponseWriter, r: Request) -> None:
        recorder = StatusRecorder(w)
        try:
            self.inner.serve_http(ctx, recorder, r)
        except Exception:
            if self.log:
                logger.exception("recovered from handler error: %s %s", r.method, r.path)
            if not recorder.wrote_header:
                http_error(w, "Internal Server Error", 500)


def recoverer(*, log: bool = True) -> Constructor:
    """Constructor for ``Recoverer``. *log* controls the exception log."""

    def construct(inner: Handler) -> Handler:
        return Recoverer(inner, log)

    return construct
