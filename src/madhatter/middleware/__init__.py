"""Built-in constructors -- each returns a ``Constructor`` for ``Chain``.

A constructor is any callable matching:
    def construct(inner: Handler) -> Handler

Built-in constructors:
    access_log -- INFO record per request on ``madhatter.access``
    recoverer -- Turn handler exceptions into 500 responses
    request_id -- Request ID in the context and the X-Request-ID header
    security_headers -- X-Frame-Options, X-Content-Type-Options, Referrer-Policy
"""

from madhatter.middleware.access_log import AccessLog, access_log
from madhatter.middleware.recover import Recoverer, recoverer
from madhatter.middleware.request_id import REQUEST_ID_KEY, RequestID, get_request_id, request_id
from madhatter.middleware.security_headers import (
    SecurityHeaders,
    SecurityHeadersConfig,
    security_headers,
)

__all__ = [
    "REQUEST_ID_KEY",
    "AccessLog",
    "Recoverer",
    "RequestID",
    "SecurityHeaders",
    "SecurityHeadersConfig",
    "access_log",
    "get_request_id",
    "recoverer",
    "request_id",
    "security_headers",
]
