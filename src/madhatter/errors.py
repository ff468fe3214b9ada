"""Madhatter exception hierarchy.

Pattern and config validation raise ``ConfigurationError`` at setup time;
``ContextCanceled`` is what a cancelled context reports.
"""


class MadhatterError(Exception):
    """Base for all madhatter-specific errors."""


class ConfigurationError(MadhatterError):
    """Raised when a route pattern or config value is invalid.

    Raised at registration / construction time, never per request.
    """


class ContextCanceled(MadhatterError):  # noqa: N818 -- mirrors the state it reports
    """The value of ``ctx.err`` once a context has been cancelled."""

    def __init__(self, detail: str = "context canceled") -> None:
        super().__init__(detail)

