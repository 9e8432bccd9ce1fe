"""Application configuration.

Server address, router matching flags, and optional TLS files for an App.
Built once and never mutated; use ``dataclasses.replace`` for variants.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(port=3000, ignore_trailing_slash=False)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False  # pounce auto-reload
    log_level: str = "info"

    # Routing
    ignore_trailing_slash: bool = True
    ignore_leading_slash: bool = True
    case_sensitive: bool = True

    # TLS (optional)
    ssl_certfile: str | None = None
    ssl_keyfile: str | None = None

    @property
    def secure(self) -> bool:
        """True when both a certificate and a key are configured."""
        return bool(self.ssl_certfile and self.ssl_keyfile)
