"""Adapters between the context-aware and the context-free conventions.

- ``adapt_final`` mounts a ``TransportHandler`` (e.g. a ``ServeMux``) as the
  terminal step of a chain by dropping the context.
- ``adapt_middleware`` turns middleware written for the
  ``(w, r, next)`` convention into a ``Constructor``.

Foreign middleware has no context parameter, so the ``next`` it receives
calls the inner handler with the *background* context. Values that outer
constructors put into the context are not visible to handlers reached
through a foreign middleware's ``next``, and those handlers never observe
the request's cancellation.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeAlias, runtime_checkable

from madhatter.context import Context, background
from madhatter.handler import Constructor, Handler, HandlerFunc, TransportHandler
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter

# The ``next`` callback handed to foreign middleware.
NextFn: TypeAlias = Callable[[ResponseWriter, Request], None]


@runtime_checkable
class ForeignMiddleware(Protocol):
    """Middleware in the ``(w, r, next)`` convention."""

    def serve_http(self, w: ResponseWriter, r: Request, next: NextFn) -> None: ...  # noqa: A002


ForeignMiddlewareFn: TypeAlias = Callable[[ResponseWriter, Request, NextFn], None]


@dataclass(frozen=True, slots=True)
class ForeignHandlerFunc:
    """Adapts a plain ``(w, r, next)`` function to ``ForeignMiddleware``."""

    fn: ForeignMiddlewareFn

    def serve_http(self, w: ResponseWriter, r: Request, next: NextFn) -> None:  # noqa: A002
        self.fn(w, r, next)


def adapt_final(h: TransportHandler) -> Handler:
    """Wrap a context-free handler so it can terminate a chain."""

    def serve(_ctx: Context, w: ResponseWriter, r: Request) -> None:
        h.serve_http(w, r)

    return HandlerFunc(serve)


def adapt_middleware(mw: ForeignMiddleware | ForeignMiddlewareFn) -> Constructor:
    """Convert ``(w, r, next)`` middleware into a chain ``Constructor``.

    Accepts an object with a ``serve_http(w, r, next)`` method or a plain
    function of that shape.
    """
    foreign: ForeignMiddleware = mw if isinstance(mw, ForeignMiddleware) else ForeignHandlerFunc(mw)

    def construct(inner: Handler) -> Handler:
        def next_shim(w: ResponseWriter, r: Request) -> None:
            inner.serve_http(background(), w, r)

        def serve(_ctx: Context, w: ResponseWriter, r: Request) -> None:
            foreign.serve_http(w, r, next_shim)

        return HandlerFunc(serve)

    return construct


adapt_instance = adapt_middleware
