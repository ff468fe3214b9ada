"""Madhatter -- context-aware handler chains.

Declare middleware constructors once, combine them with a terminal handler,
and get a handler that gives every request its own cancellable context.

Basic usage::

    from madhatter import Chain, HandlerFunc

    def hello(ctx, w, r):
        w.write("hello\\n")

    handler = Chain(auth, logging).then(HandlerFunc(hello))
    handler.serve_http(w, r)

Serving over ASGI::

    from madhatter import ASGIAdapter

    app = ASGIAdapter(handler)
"""

__version__ = "0.1.0"
__all__ = [
    "ASGIAdapter",
    "BridgeConfig",
    "BufferedResponseWriter",
    "Chain",
    "ConfigurationError",
    "Constructor",
    "Context",
    "ContextCanceled",
    "ForeignHandlerFunc",
    "ForeignMiddleware",
    "Handler",
    "HandlerFunc",
    "Headers",
    "MadhatterError",
    "MutableHeaders",
    "Request",
    "ResponseWriter",
    "ServeMux",
    "TransportHandler",
    "TransportHandlerFunc",
    "adapt_final",
    "adapt_instance",
    "adapt_middleware",
    "background",
    "create_root_handler",
    "default_serve_mux",
    "http_error",
    "new",
    "request_scope",
    "with_cancel",
    "with_value",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import madhatter`` fast while providing a clean top-level API.
    """
    if name in ("Chain", "new"):
        from madhatter import chain as _chain

        return getattr(_chain, name)

    if name in (
        "Constructor",
        "Handler",
        "HandlerFunc",
        "TransportHandler",
        "TransportHandlerFunc",
    ):
        from madhatter import handler as _handler

        return getattr(_handler, name)

    if name in ("Context", "background", "request_scope", "with_cancel", "with_value"):
        from madhatter import context as _ctx

        return getattr(_ctx, name)

    if name in (
        "ForeignHandlerFunc",
        "ForeignMiddleware",
        "adapt_final",
        "adapt_instance",
        "adapt_middleware",
    ):
        from madhatter import adapters as _adapters

        return getattr(_adapters, name)

    if name == "create_root_handler":
        from madhatter.boundary import create_root_handler

        return create_root_handler

    if name in ("ServeMux", "default_serve_mux"):
        from madhatter import mux as _mux

        return getattr(_mux, name)

    if name == "Request":
        from madhatter.http.request import Request

        return Request

    if name in ("Headers", "MutableHeaders"):
        from madhatter.http import headers as _headers

        return getattr(_headers, name)

    if name in ("BufferedResponseWriter", "ResponseWriter", "http_error"):
        from madhatter.http import writer as _writer

        return getattr(_writer, name)

    if name == "ASGIAdapter":
        from madhatter.server.bridge import ASGIAdapter

        return ASGIAdapter

    if name == "BridgeConfig":
        from madhatter.config import BridgeConfig

        return BridgeConfig

    if name in ("ConfigurationError", "ContextCanceled", "MadhatterError"):
        from madhatter import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
