"""Conduit exception hierarchy.

Shared across Router, App, and the dispatch pipeline so every module
raises and catches the same types.
"""


class ConduitError(Exception):
    """Base for all conduit-specific errors."""


class ConfigurationError(ConduitError):
    """Raised when routes, middleware, or hooks are configured incorrectly.

    Registration mistakes surface immediately. A named middleware that
    cannot be resolved surfaces at dispatch time and is handled by the
    error-hook path like any other pipeline failure.
    """


class MiddlewareNotFound(ConfigurationError):  # noqa: N818
    """A route references a middleware name that was never registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Middleware {name!r} not found.")
