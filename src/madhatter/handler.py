"""Handler protocols and their function adapters.

Two calling conventions meet here:

- ``Handler.serve_http(ctx, w, r)`` -- context-aware, what chains compose.
- ``TransportHandler.serve_http(w, r)`` -- context-free, what the transport
  (``ServeMux``, the ASGI bridge) understands and what ``Chain.then`` returns.

Any object with the right ``serve_http`` method satisfies a protocol. The
``*Func`` dataclasses let a plain function do the same without defining a
class::

    def hello(ctx: Context, w: ResponseWriter, r: Request) -> None:
        w.write("hello\\n")

    chain.then(HandlerFunc(hello))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeAlias, runtime_checkable

from madhatter.context import Context
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter


@runtime_checkable
class Handler(Protocol):
    """Handles one request given its context, response sink and request."""

    def serve_http(self, ctx: Context, w: ResponseWriter, r: Request) -> None: ...


@runtime_checkable
class TransportHandler(Protocol):
    """Handles one request in the transport's context-free convention."""

    def serve_http(self, w: ResponseWriter, r: Request) -> None: ...


HandlerFn: TypeAlias = Callable[[Context, ResponseWriter, Request], None]
TransportHandlerFn: TypeAlias = Callable[[ResponseWriter, Request], None]

# A piece of middleware: takes the inner handler, returns the wrapping one.
Constructor: TypeAlias = Callable[[Handler], Handler]


@dataclass(frozen=True, slots=True)
class HandlerFunc:
    """Adapts a plain ``(ctx, w, r)`` function to ``Handler``."""

    fn: HandlerFn

    def serve_http(self, ctx: Context, w: ResponseWriter, r: Request) -> None:
        self.fn(ctx, w, r)


@dataclass(frozen=True, slots=True)
class TransportHandlerFunc:
    """Adapts a plain ``(w, r)`` function to ``TransportHandler``."""

    fn: TransportHandlerFn

    def serve_http(self, w: ResponseWriter, r: Request) -> None:
        self.fn(w, r)
