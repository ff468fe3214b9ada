"""Chain -- an immutable, reusable list of middleware constructors.

A chain memorises constructors and combines them with a terminal handler
on demand::

    Chain(m1, m2, m3).then(h)

is equivalent to::

    create_root_handler(m1(m2(m3(h))))

``m1`` ends up outermost and sees the request first. The root boundary
around the whole thing gives every request a fresh cancellable context and
cancels it when the request is done.

A chain can be reused: call ``then`` as often as needed, with the same or
different terminal handlers. Constructors run again on every ``then`` call,
so a chain reused N times creates N independent instances of each
middleware. Anything a constructor captures at wrap time belongs to one
composed handler only.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

from madhatter.adapters import adapt_final
from madhatter.boundary import create_root_handler
from madhatter.handler import Constructor, Handler, HandlerFn, HandlerFunc, TransportHandler
from madhatter.mux import default_serve_mux

logger = logging.getLogger("madhatter.chain")


class Chain:
    """An ordered, immutable sequence of ``Constructor``s.

    Once created, a chain always holds the same constructors in the same
    order. ``append`` returns a new chain and leaves the receiver untouched,
    so a chain can be shared freely between threads.
    """

    __slots__ = ("_constructors", "_finalize")

    _constructors: tuple[Constructor, ...]
    _finalize: Callable[[Handler], TransportHandler]

    def __init__(self, *constructors: Constructor) -> None:
        # Constructors are not called until then() / then_func().
        object.__setattr__(self, "_constructors", tuple(constructors))
        object.__setattr__(self, "_finalize", create_root_handler)

    def __setattr__(self, name: str, value: Any) -> None:
        msg = f"{type(self).__name__} is immutable; use append() to extend it"
        raise AttributeError(msg)

    def __delattr__(self, name: str) -> None:
        msg = f"{type(self).__name__} is immutable"
        raise AttributeError(msg)

    @property
    def constructors(self) -> tuple[Constructor, ...]:
        return self._constructors

    def __len__(self) -> int:
        return len(self._constructors)

    def __iter__(self) -> Iterator[Constructor]:
        return iter(self._constructors)

    def __repr__(self) -> str:
        names = ", ".join(getattr(c, "__qualname__", repr(c)) for c in self._constructors)
        return f"Chain({names})"

    def then(self, h: Handler | None = None) -> TransportHandler:
        """Compose the chain around *h* and return the transport handler.

        ``None`` means ``default_serve_mux``, adapted to ignore the context.
        """
        final: Handler
        if h is not None:
            final = h
        else:
            final = adapt_final(default_serve_mux)

        for construct in reversed(self._constructors):
            final = construct(final)

        logger.debug("composed chain of %d constructors", len(self._constructors))
        return self._finalize(final)

    def then_func(self, fn: HandlerFn | None = None) -> TransportHandler:
        """Like ``then``, for a plain ``(ctx, w, r)`` function.

        ``c.then_func(fn)`` is equivalent to ``c.then(HandlerFunc(fn))``.
        """
        if fn is None:
            return self.then(None)
        return self.then(HandlerFunc(fn))

    def append(self, *constructors: Constructor) -> Chain:
        """Return a new chain with *constructors* added at the end.

        The receiver keeps its own constructors; the new chain gets a new
        tuple and the same fixed finalizer.
        """
        combined = (*self._constructors, *constructors)
        return Chain(*combined)


def new(*constructors: Constructor) -> Chain:
    """Create a chain. Same as ``Chain(*constructors)``."""
    return Chain(*constructors)
