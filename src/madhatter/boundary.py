"""Root boundary -- where a request's context is born and cancelled.

The boundary turns a context-aware ``Handler`` into the context-free
``TransportHandler`` the transport calls. It is the only component that
creates or cancels a request context.
"""

import logging
from dataclasses import dataclass

from madhatter.context import background, with_cancel
from madhatter.handler import Handler
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter

logger = logging.getLogger("madhatter.chain")


@dataclass(frozen=True, slots=True)
class RootHandler:
    """Transport-facing wrapper around a fully composed handler chain.

    For every request: derive a fresh cancellable context from the
    background context, run ``handler`` with it, and cancel it when the
    call exits, including when an exception unwinds through it.
    """

    handler: Handler

    def serve_http(self, w: ResponseWriter, r: Request) -> None:
        ctx, cancel = with_cancel(background())
        try:
            self.handler.serve_http(ctx, w, r)
        except Exception:
            logger.debug("handler raised for %s %s; cancelling context", r.method, r.path)
            raise
        finally:
            cancel()


def create_root_handler(h: Handler) -> RootHandler:
    """The fixed finalizer every ``Chain`` applies after composition."""
    return RootHandler(h)
