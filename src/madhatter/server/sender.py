"""ASGI response sending -- translates a buffered response to ASGI messages."""

from madhatter._internal.asgi import Send, response_body, response_start
from madhatter.http.writer import BufferedResponseWriter


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(writer: BufferedResponseWriter, send: Send, *, head: bool = False) -> None:
    """Send the status, headers and body recorded by *writer*.

    ``Content-Length`` is always computed here; a value set by the handler
    is replaced. For ``HEAD`` requests the length is kept and the body
    dropped.
    """
    headers = writer.result_headers.copy()
    body = writer.body if _body_allowed(writer.status) else b""
    headers.set("Content-Length", str(len(body)))

    await send(response_start(writer.status, headers.encoded()))
    await send(response_body(b"" if head else body))
