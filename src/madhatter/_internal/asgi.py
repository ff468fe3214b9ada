"""ASGI message shapes spoken by the bridge. Users never see these."""

from collections.abc import Awaitable, Callable, Mapping, MutableMapping
from typing import Any, TypeAlias

Scope: TypeAlias = Mapping[str, Any]
Message: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[Message]]
Send: TypeAlias = Callable[[Message], Awaitable[None]]

# Incoming message types the bridge acts on.
HTTP_DISCONNECT = "http.disconnect"
LIFESPAN_STARTUP = "lifespan.startup"
LIFESPAN_SHUTDOWN = "lifespan.shutdown"


def response_start(status: int, headers: list[tuple[bytes, bytes]]) -> Message:
    return {"type": "http.response.start", "status": status, "headers": headers}


def response_body(body: bytes) -> Message:
    return {"type": "http.response.body", "body": body}


def lifespan_complete(event: str) -> Message:
    """Acknowledge ``lifespan.startup`` or ``lifespan.shutdown``."""
    return {"type": f"{event}.complete"}
