"""Named middleware registry.

Maps a logical name to a middleware callable so routes can share one
implementation without re-registering it::

    registry.register("auth", require_token)
    registry.resolve(Named("auth"))   # -> require_token

Registration is expected before serving begins. Lookups at dispatch
time are plain dict reads.
"""

from collections.abc import Callable, Iterator
from typing import Any

from conduit.errors import ConfigurationError, MiddlewareNotFound
from conduit.middleware.protocol import Inline, MiddlewareRef, Named


class MiddlewareRegistry:
    """Name -> middleware mapping. Last registration for a name wins."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[str, Callable[..., Any]] = {}

    def register(self, name: str, middleware: Callable[..., Any]) -> None:
        """Store *middleware* under *name*, replacing any earlier entry."""
        if not name:
            msg = "Middleware name must not be empty."
            raise ConfigurationError(msg)
        if not callable(middleware):
            msg = f"Middleware {name!r} must be callable, got {type(middleware).__name__}."
            raise ConfigurationError(msg)
        self._entries[name] = middleware

    def resolve(self, ref: MiddlewareRef) -> Callable[..., Any]:
        """Return the callable a reference points at.

        Raises ``MiddlewareNotFound`` for an unregistered name.
        """
        match ref:
            case Inline(func=func):
                return func
            case Named(name=name):
                try:
                    return self._entries[name]
                except KeyError:
                    raise MiddlewareNotFound(name) from None
        msg = f"Not a middleware reference: {ref!r}"
        raise TypeError(msg)

    def names(self) -> tuple[str, ...]:
        """Registered names, in registration order."""
        return tuple(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
