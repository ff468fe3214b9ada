"""Access log -- one INFO record per request, after the response is written."""

import logging
import time
from dataclasses import dataclass

from madhatter.context import Context
from madhatter.handler import Constructor, Handler
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter, StatusRecorder

_access_logger = logging.getLogger("madhatter.access")


@dataclass(frozen=True, slots=True)
class AccessLog:
    """Logs ``METHOD path status bytes duration`` for every request.

    Requests whose handler raises are logged with status 500 before the
    exception continues to propagate.
    """

    inner: Handler
    logger: logging.Logger

    def serve_http(self, ctx: Context, w: ResponseWriter, r: Request) -> None:
        recorder = StatusRecorder(w)
        start = time.monotonic()
        status: int | None = None
        try:
            self.inner.serve_http(ctx, recorder, r)
            status = recorder.status
        finally:
            elapsed_ms = (time.monotonic() - start) * 1000
            self.logger.info(
                "%s %s %d %dB %.1fms",
                r.method,
                r.url,
                status if status is not None else 500,
                recorder.bytes_written,
                elapsed_ms,
            )


def access_log(logger: logging.Logger | None = None) -> Constructor:
    """Constructor for ``AccessLog``; logs to ``madhatter.access`` by default."""
    target = logger or _access_logger

    def construct(inner: Handler) -> Handler:
        return AccessLog(inner, target)

    return construct
