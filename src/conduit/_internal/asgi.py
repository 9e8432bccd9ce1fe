"""Typed ASGI definitions.

The raw aliases describe what the server hands to ``App.__call__``.
``HTTPScope`` is the normalized view ``Request.from_asgi`` builds from.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from dataclasses import dataclass
from typing import Any, TypeAlias

# Raw ASGI types
Scope: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send: TypeAlias = Callable[[MutableMapping[str, Any]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class HTTPScope:
    """An ``http`` scope with defaults filled in and the method upper-cased."""

    type: str
    http_version: str
    method: str
    path: str
    raw_path: bytes
    query_string: bytes
    headers: tuple[tuple[bytes, bytes], ...]
    server: tuple[str, int] | None
    client: tuple[str, int] | None
    scheme: str = "http"

    @classmethod
    def from_scope(cls, scope: Scope) -> "HTTPScope":
        """Parse raw ASGI scope into typed object."""
        server = scope.get("server")
        client = scope.get("client")
        path = scope["path"]
        return cls(
            type=scope["type"],
            http_version=scope.get("http_version", "1.1"),
            method=scope["method"].upper(),
            path=path,
            raw_path=scope.get("raw_path") or path.encode("utf-8"),
            query_string=scope.get("query_string", b""),
            headers=tuple(scope.get("headers", ())),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            scheme=scope.get("scheme", "http"),
        )

    @property
    def target(self) -> str:
        """The raw request target: path plus query string, as sent."""
        target = self.raw_path.decode("latin-1")
        if self.query_string:
            return f"{target}?{self.query_string.decode('latin-1')}"
        return target
