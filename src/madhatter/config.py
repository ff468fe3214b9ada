"""Bridge configuration.

BridgeConfig is a frozen dataclass -- immutable after creation,
IDE-autocompletable, no string-key dict lookups.
"""

from dataclasses import dataclass

from madhatter.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    """Settings for ``ASGIAdapter``. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = BridgeConfig(debug=True, max_content_length=1024 * 1024)
    """

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    # Show tracebacks in 500 responses
    debug: bool = False

    def __post_init__(self) -> None:
        if self.max_content_length < 0:
            msg = f"max_content_length must be >= 0, got {self.max_content_length}"
            raise ConfigurationError(msg)
