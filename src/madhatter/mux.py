"""Request multiplexer -- the default terminal step of a chain.

``ServeMux`` stands in for the transport's default request router:
``Chain.then(None)`` dispatches to ``default_serve_mux``. It registers
patterns, calls the handler whose pattern matches with a copy of the
request carrying the captured ``path_params``, and otherwise answers with
a plain-text 404, or a 405 with ``Allow`` when only the method is wrong.

Patterns have the ``net/http`` ServeMux shape:

- ``/health`` matches exactly that path.
- ``/users/{id}`` captures one non-empty segment as ``id``.
- ``/files/{rest...}`` captures the rest of the path, possibly empty.
- A trailing slash (``/assets/``, or ``/`` alone) matches the whole subtree.

Captured values are always strings; handlers convert them. When several
patterns match, the most specific one wins: at the first segment where
they differ a literal beats ``{name}``, which beats a remainder. A pattern
registered for given methods beats the same pattern registered for all.

The module-level ``handle`` / ``handle_func`` register on
``default_serve_mux``::

    from madhatter import mux

    mux.handle_func("/health", lambda w, r: w.write("ok\\n"))
    app = Chain(request_id()).then(None)
"""

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from madhatter.errors import ConfigurationError
from madhatter.handler import TransportHandler, TransportHandlerFn, TransportHandlerFunc
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter, http_error, not_found, status_text

logger = logging.getLogger("madhatter.http")

# Segment kinds, ordered from most to least specific.
_LITERAL = 0
_WILDCARD = 1
_REMAINDER = 2


@dataclass(frozen=True, slots=True)
class _Segment:
    kind: int
    # Literal text, or the wildcard name ("" for a bare trailing slash).
    value: str


def parse_pattern(pattern: str) -> tuple[_Segment, ...]:
    """Split *pattern* into segments, raising ``ConfigurationError`` if invalid."""
    if not pattern.startswith("/"):
        msg = f"Route pattern {pattern!r} must start with '/'."
        raise ConfigurationError(msg)

    parts = pattern[1:].split("/")
    last = len(parts) - 1
    segments: list[_Segment] = []
    names: set[str] = set()

    for index, part in enumerate(parts):
        if not part:
            if index != last:
                msg = f"Route pattern {pattern!r} has an empty segment."
                raise ConfigurationError(msg)
            segments.append(_Segment(_REMAINDER, ""))
            continue

        if not (part.startswith("{") and part.endswith("}")):
            if any(c in part for c in "{}<>"):
                msg = (
                    f"Route pattern {pattern!r}: wildcards take a whole segment "
                    "and are written {name} or {name...}."
                )
                raise ConfigurationError(msg)
            segments.append(_Segment(_LITERAL, part))
            continue

        name = part[1:-1]
        kind = _WILDCARD
        if name.endswith("..."):
            name = name[:-3]
            kind = _REMAINDER
            if index != last:
                msg = f"{{{name}...}} must be the last segment of route pattern {pattern!r}."
                raise ConfigurationError(msg)
        if not name.isidentifier():
            msg = f"Invalid wildcard name {name!r} in route pattern {pattern!r}."
            raise ConfigurationError(msg)
        if name in names:
            msg = f"Duplicate wildcard name {name!r} in route pattern {pattern!r}."
            raise ConfigurationError(msg)
        names.add(name)
        segments.append(_Segment(kind, name))

    return tuple(segments)


def _split_path(path: str) -> list[str]:
    return path.removeprefix("/").split("/")


@dataclass(frozen=True, slots=True)
class Route:
    """A registered pattern and the transport handler serving it.

    ``methods`` is ``None`` when the route answers every method.
    """

    pattern: str
    handler: TransportHandler
    methods: frozenset[str] | None = None
    segments: tuple[_Segment, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", parse_pattern(self.pattern))

    @property
    def shape(self) -> tuple[tuple[int, str], ...]:
        """The pattern with wildcard names erased; equal shapes match equal paths."""
        return tuple((s.kind, s.value if s.kind == _LITERAL else "") for s in self.segments)

    @property
    def specificity(self) -> tuple[int, ...]:
        return tuple(s.kind for s in self.segments)

    def accepts(self, method: str) -> bool:
        if self.methods is None:
            return True
        return method in self.methods or (method == "HEAD" and "GET" in self.methods)

    def match_path(self, parts: list[str]) -> dict[str, str] | None:
        """Captured wildcards if this route's pattern matches *parts*."""
        params: dict[str, str] = {}
        for index, seg in enumerate(self.segments):
            if index >= len(parts):
                return None
            if seg.kind == _REMAINDER:
                if seg.value:
                    params[seg.value] = "/".join(parts[index:])
                return params
            part = parts[index]
            if seg.kind == _LITERAL:
                if part != seg.value:
                    return None
            elif not part:
                return None
            else:
                params[seg.value] = part
        if len(parts) != len(self.segments):
            return None
        return params


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Outcome of a lookup.

    ``route`` is ``None`` on a miss. A miss with a non-empty ``allowed``
    means the path matched but not for the request method.
    """

    route: Route | None
    path_params: dict[str, str] = field(default_factory=dict)
    allowed: frozenset[str] = frozenset()


def _normalize_methods(pattern: str, methods: Iterable[str] | None) -> frozenset[str] | None:
    if methods is None:
        return None
    if isinstance(methods, str):
        methods = (methods,)
    normalized = frozenset(m.strip().upper() for m in methods)
    if not normalized or "" in normalized:
        msg = f"Route {pattern!r} needs at least one non-empty method name, or methods=None for all."
        raise ConfigurationError(msg)
    return normalized


class ServeMux:
    """Pattern-to-handler multiplexer.

    Registration is thread-safe and may happen while the mux is serving;
    lookups read an immutable snapshot of the route list.
    """

    __slots__ = ("_lock", "_routes")

    def __init__(self) -> None:
        self._routes: tuple[Route, ...] = ()
        self._lock = threading.Lock()

    def handle(
        self,
        pattern: str,
        handler: TransportHandler,
        methods: Iterable[str] | None = None,
    ) -> None:
        """Register *handler* for *pattern*.

        *methods* restricts the route to the given HTTP methods; ``None``
        accepts any method. Raises ``ConfigurationError`` for malformed
        patterns, an empty method list, or a pattern already registered for
        one of the same methods.
        """
        route = Route(pattern, handler, _normalize_methods(pattern, methods))
        with self._lock:
            for existing in self._routes:
                if existing.shape != route.shape:
                    continue
                if existing.methods is None or route.methods is None:
                    overlap = existing.methods is route.methods
                else:
                    overlap = bool(existing.methods & route.methods)
                if overlap:
                    msg = f"Route {pattern!r} is already registered (as {existing.pattern!r})."
                    raise ConfigurationError(msg)
            self._routes = (*self._routes, route)
        logger.debug("registered %s %s", ",".join(sorted(route.methods or "*")), pattern)

    def handle_func(
        self,
        pattern: str,
        fn: TransportHandlerFn,
        methods: Iterable[str] | None = None,
    ) -> None:
        """Register a plain ``(w, r)`` function for *pattern*."""
        self.handle(pattern, TransportHandlerFunc(fn), methods)

    @property
    def routes(self) -> list[Route]:
        """Registered routes, in registration order."""
        return list(self._routes)

    def match(self, method: str, path: str) -> RouteMatch:
        """Find the route serving *method* and *path*."""
        parts = _split_path(path)
        best: RouteMatch | None = None
        best_key: tuple[tuple[int, ...], int] | None = None
        allowed: set[str] = set()

        for route in self._routes:
            params = route.match_path(parts)
            if params is None:
                continue
            if not route.accepts(method):
                allowed.update(route.methods or ())
                continue
            key = (route.specificity, 0 if route.methods is not None else 1)
            if best_key is None or key < best_key:
                best, best_key = RouteMatch(route, params), key

        if best is not None:
            return best
        if "GET" in allowed:
            allowed.add("HEAD")
        return RouteMatch(None, allowed=frozenset(allowed))

    def serve_http(self, w: ResponseWriter, r: Request) -> None:
        found = self.match(r.method, r.path)
        if found.route is not None:
            found.route.handler.serve_http(w, replace(r, path_params=found.path_params))
            return

        if found.allowed:
            logger.debug("405 %s %s", r.method, r.path)
            w.headers.set("Allow", ", ".join(sorted(found.allowed)))
            http_error(w, status_text(405), 405)
        else:
            logger.debug("404 %s %s", r.method, r.path)
            not_found(w, r)


default_serve_mux = ServeMux()


def handle(pattern: str, handler: TransportHandler, methods: Iterable[str] | None = None) -> None:
    """Register *handler* on ``default_serve_mux``."""
    default_serve_mux.handle(pattern, handler, methods)


def handle_func(pattern: str, fn: TransportHandlerFn, methods: Iterable[str] | None = None) -> None:
    """Register a plain ``(w, r)`` function on ``default_serve_mux``."""
    default_serve_mux.handle_func(pattern, fn, methods)
