"""Request-scoped, cancellable contexts passed explicitly through handlers.

Provides:
- ``background()``: the process-wide root. Never cancelled, carries no values.
- ``with_cancel()``: a child that can be cancelled independently of its parent.
- ``with_value()``: an immutable child carrying one extra key/value pair.
- ``request_scope()``: a context manager that cancels its context on exit.

Contexts are values, not ambient state. Nothing here touches a ContextVar
or a thread-local: every handler receives its context as an argument and
hands a (possibly derived) context to the next one.

Thread safety:
    Cancellation is guarded by a per-context ``threading.Lock`` and
    signalled through a ``threading.Event``, so an observer on another
    thread can ``wait()`` for the request to finish.
"""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Callable, Hashable, Iterator
from typing import Any, TypeAlias

from madhatter.errors import ContextCanceled

# Cancels a context. Idempotent.
CancelFunc: TypeAlias = Callable[[], None]


class Context:
    """An immutable carrier of request-scoped values and a cancellation signal.

    The base class is the background context: no parent, no values, never
    cancelled. Derived contexts delegate whatever they do not override to
    their parent.
    """

    __slots__ = ("_parent",)

    def __init__(self, parent: Context | None = None) -> None:
        self._parent = parent

    @property
    def parent(self) -> Context | None:
        return self._parent

    def value(self, key: Hashable, default: Any = None) -> Any:
        """Return the value bound to *key* here or in any ancestor."""
        if self._parent is None:
            return default
        return self._parent.value(key, default)

    @property
    def err(self) -> ContextCanceled | None:
        """``None`` while live, a ``ContextCanceled`` once cancelled."""
        if self._parent is None:
            return None
        return self._parent.err

    @property
    def cancelled(self) -> bool:
        return self.err is not None

    def wait(self, timeout: float | None = None) -> bool:
        """Block until this context is cancelled or *timeout* elapses.

        Returns True if the context was cancelled. Waiting on a context
        with no cancellable ancestor without a timeout blocks forever.
        """
        done = self._done_event()
        if done is None:
            threading.Event().wait(timeout)
            return False
        return done.wait(timeout)

    def raise_if_cancelled(self) -> None:
        """Raise ``ContextCanceled`` if this context has been cancelled.

        Long-running work inside a handler calls this between steps to
        stop once the request has finished.
        """
        err = self.err
        if err is not None:
            raise err

    # -- Internal --

    def _done_event(self) -> threading.Event | None:
        if self._parent is None:
            return None
        return self._parent._done_event()

    def _cancel_owner(self) -> _CancelContext | None:
        """Nearest ancestor (or self) that owns a cancellation signal."""
        if self._parent is None:
            return None
        return self._parent._cancel_owner()

    def __repr__(self) -> str:
        return "Context.Background"


class _CancelContext(Context):
    """A context with its own cancellation signal.

    Registers itself with the nearest cancellable ancestor so that
    cancelling the ancestor cancels this context too.
    """

    __slots__ = ("_children", "_done", "_err", "_lock")

    def __init__(self, parent: Context) -> None:
        super().__init__(parent)
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._err: ContextCanceled | None = None
        self._children: set[_CancelContext] = set()

        owner = parent._cancel_owner()
        if owner is not None:
            owner._attach(self)

    @property
    def err(self) -> ContextCanceled | None:
        with self._lock:
            return self._err

    def cancel(self, err: ContextCanceled | None = None) -> None:
        """Cancel this context and every context derived from it."""
        with self._lock:
            if self._err is not None:
                return
            self._err = err or ContextCanceled()
            self._done.set()
            children = list(self._children)
            self._children.clear()

        for child in children:
            child.cancel(self._err)

        owner = self._parent._cancel_owner() if self._parent is not None else None
        if owner is not None:
            owner._detach(self)

    def _attach(self, child: _CancelContext) -> None:
        with self._lock:
            err = self._err
            if err is None:
                self._children.add(child)
                return
        # Parent already cancelled: the child is born cancelled.
        child.cancel(err)

    def _detach(self, child: _CancelContext) -> None:
        with self._lock:
            self._children.discard(child)

    def _done_event(self) -> threading.Event:
        return self._done

    def _cancel_owner(self) -> _CancelContext:
        return self

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "live"
        return f"{self._parent!r}.WithCancel({state})"


class _ValueContext(Context):
    """A context binding exactly one key to a value."""

    __slots__ = ("_key", "_val")

    def __init__(self, parent: Context, key: Hashable, val: Any) -> None:
        super().__init__(parent)
        self._key = key
        self._val = val

    def value(self, key: Hashable, default: Any = None) -> Any:
        if key == self._key:
            return self._val
        return super().value(key, default)

    def __repr__(self) -> str:
        return f"{self._parent!r}.WithValue({self._key!r}, {self._val!r})"


_BACKGROUND = Context()


def background() -> Context:
    """Return the root context. Never cancelled, has no values."""
    return _BACKGROUND


def with_cancel(parent: Context) -> tuple[Context, CancelFunc]:
    """Derive a cancellable child of *parent*.

    The child is cancelled when the returned function is called or when
    *parent* is cancelled, whichever happens first. Calling the function
    more than once is harmless.
    """
    ctx = _CancelContext(parent)
    return ctx, ctx.cancel


def with_value(parent: Context, key: Hashable, value: Any) -> Context:
    """Derive a child of *parent* that maps *key* to *value*.

    *parent* is not modified; lookups on the child fall back to it.
    """
    return _ValueContext(parent, key, value)


@contextlib.contextmanager
def request_scope(parent: Context | None = None) -> Iterator[Context]:
    """Yield a fresh cancellable context, cancelled when the block exits.

    Usage::

        with request_scope() as ctx:
            handler.serve_http(ctx, w, r)

    Cancellation happens on normal exit and when an exception unwinds
    through the block.
    """
    ctx, cancel = with_cancel(parent if parent is not None else background())
    try:
        yield ctx
    finally:
        cancel()
