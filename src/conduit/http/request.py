"""Immutable HTTP request.

Frozen metadata with async body access. Parsed once per exchange from
the ASGI scope: method, request target, host, and query string.
"""

from __future__ import annotations

import json as json_module
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any

from conduit._internal.asgi import HTTPScope, Receive, Scope
from conduit.http.headers import Headers
from conduit.http.query import QueryParams


def split_authority(authority: str) -> str:
    """Strip the port from an authority value.

    ``"example.com:8080"`` -> ``"example.com"``, ``"[::1]:8000"`` -> ``"[::1]"``.
    """
    if authority.startswith("["):
        end = authority.find("]")
        return authority[: end + 1] if end != -1 else authority
    host, _, _port = authority.partition(":")
    return host


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``target`` is the request target exactly as sent (path plus query
    string); ``path`` is the percent-decoded path the router matches on.
    ``authority`` is the ``Host`` header (``:authority`` under HTTP/2) and
    ``host`` is the same value without its port.
    """

    method: str
    target: str
    path: str
    query: QueryParams
    headers: Headers
    authority: str
    host: str
    http_version: str = "1.1"
    scheme: str = "http"
    client: tuple[str, int] | None = None

    # Private: ASGI receive callable for body streaming
    _receive: Receive | None = field(default=None, repr=False, compare=False)

    # Private: mutable cache for the body
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        The ASGI receive channel is consumed once; later calls return
        the cached bytes.
        """
        if "body" not in self._cache:
            self._cache["body"] = b"".join([chunk async for chunk in self.stream()])
        return self._cache["body"]

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        if self._receive is None:
            return
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                break
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON."""
        return json_module.loads(await self.body())

    async def text(self) -> str:
        """Read the body as UTF-8 text."""
        return (await self.body()).decode("utf-8")

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive | None = None) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        parsed = HTTPScope.from_scope(scope)
        headers = Headers(parsed.headers)
        authority = headers.get("host") or headers.get(":authority") or ""
        if not authority and parsed.server is not None:
            authority = f"{parsed.server[0]}:{parsed.server[1]}"
        return cls(
            method=parsed.method,
            target=parsed.target,
            path=parsed.path,
            query=QueryParams(parsed.query_string),
            headers=headers,
            authority=authority,
            host=split_authority(authority).lower(),
            http_version=parsed.http_version,
            scheme=parsed.scheme,
            client=parsed.client,
            _receive=receive,
        )
