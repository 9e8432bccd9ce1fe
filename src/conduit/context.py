"""Request context — the per-exchange response surface.

One ``RequestContext`` is built for every matched request and handed to
each hook, middleware, and handler in turn. It carries the parsed
request, the route's params and store, and the mutable response state.

Response state is a small state machine::

    PENDING ──flush──> HEADERS_SENT ──finish──> FINALIZED
       └──────────────finish─────────────────────┘

Setters (``set_status``, ``set_headers``, ...) only touch local state and
return the context for chaining. ``send`` and ``end`` are the only
operations that write, and the status line and headers are flushed at
most once, always before any body bytes.

The current context is also published through a ContextVar for code
that has no direct reference to it (``get_context()``).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterator, Mapping
from contextvars import ContextVar
from enum import Enum
from typing import Any

import anyio

from conduit._internal.asgi import Send
from conduit.http.query import QueryParams
from conduit.http.request import Request
from conduit.server.sender import (
    JSON_CONTENT_TYPE,
    HeaderValue,
    body_allowed,
    body_message,
    encode_chunk,
    encode_headers,
    encode_json,
    start_message,
)

logger = logging.getLogger("conduit.server")

# Block size for file-like stream payloads
READ_SIZE = 64 * 1024

_BUFFER_TYPES = (str, bytes, bytearray, memoryview)


class ResponseState(Enum):
    """Where an exchange is in its write lifecycle."""

    PENDING = "pending"
    HEADERS_SENT = "headers_sent"
    FINALIZED = "finalized"


def is_stream(payload: Any) -> bool:
    """True for payloads ``send`` pipes chunk by chunk.

    Async iterables, synchronous iterators (generators), and binary
    file-like objects qualify. Lists, tuples, and dicts do not: they
    are structured payloads and go out as JSON.
    """
    if isinstance(payload, _BUFFER_TYPES):
        return False
    if isinstance(payload, (AsyncIterable, Iterator)):
        return True
    return callable(getattr(payload, "read", None))


async def _iter_stream(stream: Any) -> AsyncIterator[Any]:
    if isinstance(stream, AsyncIterable):
        async for chunk in stream:
            yield chunk
    elif callable(getattr(stream, "read", None)):
        # File reads block; keep them off the event loop.
        while True:
            chunk = await anyio.to_thread.run_sync(stream.read, READ_SIZE)
            if not chunk:
                break
            yield chunk
    else:
        for chunk in stream:
            yield chunk


class RequestContext:
    """State for one request/response exchange.

    Attributes:
        request: The parsed, immutable ``Request``.
        params: Route parameters captured by the router.
        store: The ``extra`` metadata registered with the route.
        session: Opaque session handle. Conduit never sets it; a
            ``before`` hook or middleware typically does.
        locals: Free-form per-request scratch space for hooks and
            middleware.

    Usage::

        async def show_user(ctx):
            user = await users.get(ctx.params["id"])
            await ctx.set_status(200).set_headers({"Cache-Control": "no-store"}).send(user)
    """

    __slots__ = (
        "_headers",
        "_send",
        "_state",
        "_status",
        "_status_message",
        "locals",
        "params",
        "request",
        "session",
        "store",
    )

    def __init__(
        self,
        request: Request,
        send: Send,
        *,
        params: Mapping[str, str] | None = None,
        store: Any = None,
        session: Any = None,
    ) -> None:
        self.request = request
        self.params: dict[str, str] = dict(params or {})
        self.store = store
        self.session = session
        self.locals: dict[str, Any] = {}
        self._send = send
        self._status = 200
        self._status_message: str | None = None
        # lower-cased name -> (name as given, value)
        self._headers: dict[str, tuple[str, HeaderValue]] = {}
        self._state = ResponseState.PENDING

    def __repr__(self) -> str:
        return (
            f"<RequestContext {self.request.method} {self.request.target!r} "
            f"status={self._status} state={self._state.value}>"
        )

    # -- Request shortcuts --

    @property
    def path(self) -> str:
        """The matched request path."""
        return self.request.path

    @property
    def query(self) -> QueryParams:
        """Parsed query string parameters."""
        return self.request.query

    # -- Response state --

    @property
    def status(self) -> int:
        return self._status

    @property
    def status_message(self) -> str | None:
        return self._status_message

    @property
    def state(self) -> ResponseState:
        return self._state

    @property
    def headers_sent(self) -> bool:
        return self._state is not ResponseState.PENDING

    @property
    def finalized(self) -> bool:
        return self._state is ResponseState.FINALIZED

    @property
    def pending_headers(self) -> dict[str, HeaderValue]:
        """A copy of the headers set so far, keyed by name as given."""
        return dict(self._headers.values())

    # -- Chainable setters (no I/O) --

    def set_status(self, code: int) -> RequestContext:
        """Set the status code written when headers are flushed."""
        self._status = int(code)
        return self

    def set_status_message(self, text: str | None) -> RequestContext:
        """Set an optional reason phrase for the status line."""
        self._status_message = text
        return self

    def set_headers(self, headers: Mapping[str, HeaderValue]) -> RequestContext:
        """Merge *headers* into the pending set.

        Names are case-insensitive; a later value for the same name
        replaces the earlier one.
        """
        for name, value in headers.items():
            self._headers[name.lower()] = (name, value)
        return self

    def set_content_type(self, value: str) -> RequestContext:
        """Set the ``Content-Type`` header."""
        return self.set_headers({"Content-Type": value})

    def discard_pending(self) -> RequestContext:
        """Drop the headers and reason phrase set so far.

        No effect once headers are on the wire.
        """
        if self._state is ResponseState.PENDING:
            self._headers.clear()
            self._status_message = None
        return self

    # -- Terminal writes --

    async def send(self, payload: Any = b"", finalize: bool = True) -> RequestContext:
        """Write *payload* and, if *finalize* is true, close the exchange.

        - Streams (async iterables, iterators, file-like objects) are
          piped chunk by chunk; headers go out with the first chunk.
        - ``str`` and bytes-like payloads are written as-is.
        - Anything else is serialized to JSON, with
          ``application/json; charset=utf-8`` as the default content type.

        Call with ``finalize=False`` to keep writing afterwards.
        """
        if self._state is ResponseState.FINALIZED:
            logger.debug("write after finalize dropped: %s %s", self.request.method, self.path)
            return self

        if is_stream(payload):
            await self._send_stream(payload, finalize)
        elif isinstance(payload, _BUFFER_TYPES):
            await self._send_buffer(encode_chunk(payload), finalize)
        else:
            await self._send_buffer(
                encode_json(payload), finalize, default_content_type=JSON_CONTENT_TYPE
            )
        return self

    async def end(self, payload: str | bytes = b"") -> RequestContext:
        """Flush headers if needed and finalize, with an optional last chunk."""
        if self._state is ResponseState.FINALIZED:
            logger.debug("end after finalize dropped: %s %s", self.request.method, self.path)
            return self
        await self._send_buffer(encode_chunk(payload), finalize=True)
        return self

    # -- Internal --

    async def _send_stream(self, stream: Any, finalize: bool) -> None:
        async for chunk in _iter_stream(stream):
            if not chunk:
                continue
            if self._state is ResponseState.PENDING:
                await self._flush_headers()
            await self._write(encode_chunk(chunk), more_body=True)
        if finalize:
            await self._send_buffer(b"", finalize=True)

    async def _send_buffer(
        self,
        body: bytes,
        finalize: bool,
        *,
        default_content_type: str | None = None,
    ) -> None:
        if self._state is ResponseState.PENDING:
            # Whole body in one message: the length is known.
            await self._flush_headers(
                default_content_type=default_content_type,
                content_length=len(body) if finalize else None,
            )
        await self._write(body, more_body=not finalize)
        if finalize:
            self._state = ResponseState.FINALIZED

    async def _flush_headers(
        self,
        *,
        default_content_type: str | None = None,
        content_length: int | None = None,
    ) -> None:
        if default_content_type is not None and "content-type" not in self._headers:
            self._headers["content-type"] = ("Content-Type", default_content_type)
        pairs = list(self._headers.values())
        if (
            content_length is not None
            and body_allowed(self._status)
            and "content-length" not in self._headers
            and "transfer-encoding" not in self._headers
        ):
            pairs.append(("content-length", str(content_length)))
        await self._send(
            start_message(self._status, encode_headers(pairs), self._status_message)
        )
        self._state = ResponseState.HEADERS_SENT

    async def _write(self, body: bytes, *, more_body: bool) -> None:
        if not body_allowed(self._status):
            body = b""
        if not body and more_body:
            return
        await self._send(body_message(body, more_body=more_body))


# -- Current context --

context_var: ContextVar[RequestContext] = ContextVar("conduit_context")
"""The context of the request being dispatched. Set by the pipeline."""


def get_context() -> RequestContext:
    """Return the current request's context.

    Raises ``LookupError`` if called outside a request.
    """
    return context_var.get()
