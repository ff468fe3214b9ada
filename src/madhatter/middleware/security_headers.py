"""Security headers -- X-Frame-Options, X-Content-Type-Options, Referrer-Policy.

Adds common security headers (clickjacking, MIME sniffing, referrer
leakage) before delegating, so they are in place whenever the inner
handler writes its status. An inner handler may still override them.
"""

from dataclasses import dataclass, field

from madhatter.context import Context
from madhatter.handler import Constructor, Handler
from madhatter.http.request import Request
from madhatter.http.writer import ResponseWriter


@dataclass(frozen=True, slots=True)
class SecurityHeadersConfig:
    """Configuration for security headers.

    All values are applied as-is. Use standard header values; ``None``
    skips the optional headers.
    """

    x_frame_options: str = "DENY"
    x_content_type_options: str = "nosniff"
    referrer_policy: str = "strict-origin-when-cross-origin"
    content_security_policy: str | None = (
        "default-src 'self'; base-uri 'self'; frame-ancestors 'none'; object-src 'none'"
    )
    strict_transport_security: str | None = None

    def header_pairs(self) -> tuple[tuple[str, str], ...]:
        pairs = [
            ("X-Frame-Options", self.x_frame_options),
            ("X-Content-Type-Options", self.x_content_type_options),
            ("Referrer-Policy", self.referrer_policy),
        ]
        if self.content_security_policy:
            pairs.append(("Content-Security-Policy", self.content_security_policy))
        if self.strict_transport_security:
            pairs.append(("Strict-Transport-Security", self.strict_transport_security))
        return tuple(pairs)


@dataclass(frozen=True, slots=True)
class SecurityHeaders:
    """Sets the configured security headers, then calls ``inner``."""

    inner: Handler
    config: SecurityHeadersConfig = field(default_factory=SecurityHeadersConfig)

    def serve_http(self, ctx: Context, w: ResponseWriter, r: Request) -> None:
        for name, value in self.config.header_pairs():
            w.headers.set(name, value)
        self.inner.serve_http(ctx, w, r)


def security_headers(config: SecurityHeadersConfig | None = None) -> Constructor:
    """Constructor for ``SecurityHeaders``.

    Usage::

        Chain(security_headers()).then(app)
        Chain(security_headers(SecurityHeadersConfig(x_frame_options="SAMEORIGIN")))
    """
    resolved = config or SecurityHeadersConfig()

    def construct(inner: Handler) -> Handler:
        return SecurityHeaders(inner, resolved)

    return construct
