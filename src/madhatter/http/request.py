"""Immutable HTTP request.

Frozen metadata plus an already-read body. Handlers run synchronously, so
the transport reads the body before dispatch and the request carries it
as bytes.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, quote

from madhatter.http.headers import Headers

# Characters left as-is when a str query is percent-encoded.
_QUERY_SAFE = "=&;%+/?:@,!$'()*~"


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``path_params`` is filled in by ``ServeMux`` on a copy of the request
    (``dataclasses.replace``); the transport always creates it empty.
    """

    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    query_string: bytes = b""
    body: bytes = b""
    path_params: Mapping[str, str] = field(default_factory=dict)
    http_version: str = "1.1"
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def content_length(self) -> int | None:
        """The Content-Length header as int."""
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def url(self) -> str:
        """Path plus query string."""
        if self.query_string:
            return f"{self.path}?{self.query_string.decode('latin-1')}"
        return self.path

    def path_value(self, name: str, default: str | None = None) -> str | None:
        """Return the path parameter *name* captured by the multiplexer."""
        return self.path_params.get(name, default)

    def query_values(self) -> dict[str, list[str]]:
        """Every query parameter with all of its values, decoded as UTF-8."""
        return parse_qs(self.query_string.decode("latin-1"), keep_blank_values=True)

    def query_value(self, name: str, default: str | None = None) -> str | None:
        """First value of query parameter *name*."""
        values = self.query_values().get(name)
        return values[0] if values else default

    # -- Body access --

    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return json_module.loads(self.body)

    # -- Factories --

    @classmethod
    def build(
        cls,
        method: str = "GET",
        path: str = "/",
        *,
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        body: bytes | str = b"",
    ) -> Request:
        """Create a Request from plain values.

        *path* may carry a query string (``/search?q=hat``). Characters
        outside ASCII are percent-encoded as UTF-8, as a client would send
        them. Header values must be Latin-1 (``ValueError`` otherwise).
        """
        path, _, query_string = path.partition("?")
        pairs = headers.items() if isinstance(headers, Mapping) else (headers or ())
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(
            method=method.upper(),
            path=path or "/",
            headers=Headers.from_pairs(pairs),
            query_string=quote(query_string, safe=_QUERY_SAFE).encode("ascii"),
            body=body,
        )

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], body: bytes = b"") -> Request:
        """Create a Request from an ASGI HTTP scope and its full body."""
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=Headers(tuple(scope.get("headers", ()))),
            query_string=bytes(scope.get("query_string", b"")),
            body=body,
            http_version=scope.get("http_version", "1.1"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
        )
