"""Middleware protocol, control signals, and middleware references.

A middleware is any callable matching::

    async def my_mw(ctx: RequestContext) -> ControlSignal | None: ...

No base class required. Sync callables work too.

Returning ``ControlSignal.HALT`` stops the pipeline: later middleware,
the handler, and the ``after`` hooks do not run. Use it when the
middleware has already answered the request itself::

    async def require_token(ctx):
        if "authorization" not in ctx.request.headers:
            await ctx.set_status(401).end()
            return HALT
        return CONTINUE

Routes refer to middleware either inline (the callable itself) or by a
name registered on the app. Both forms are normalized into a
``MiddlewareRef`` when the route is registered.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from conduit.errors import ConfigurationError

if TYPE_CHECKING:
    from conduit.context import RequestContext


class ControlSignal(Enum):
    """What the pipeline should do after a middleware returns."""

    CONTINUE = "continue"
    HALT = "halt"


CONTINUE = ControlSignal.CONTINUE
HALT = ControlSignal.HALT


def should_halt(result: Any) -> bool:
    """True when a middleware result asks the pipeline to stop.

    ``HALT`` is the explicit form. A literal ``False`` is honoured as
    well; other falsy values (``None``, ``0``, ``""``) continue.
    """
    return result is ControlSignal.HALT or result is False


class Middleware(Protocol):
    """Protocol for conduit middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(ctx: RequestContext) -> None:
            ctx.locals["started"] = time.monotonic()

        # Class middleware
        class RequireHost:
            def __init__(self, host: str) -> None:
                self.host = host

            async def __call__(self, ctx: RequestContext) -> ControlSignal:
                if ctx.request.host != self.host:
                    await ctx.set_status(421).end()
                    return HALT
                return CONTINUE
    """

    def __call__(self, ctx: RequestContext) -> Any: ...


@dataclass(frozen=True, slots=True)
class Named:
    """A middleware referenced by its registered name."""

    name: str


@dataclass(frozen=True, slots=True)
class Inline:
    """A middleware given directly as a callable."""

    func: Callable[..., Any]

    @property
    def name(self) -> str:
        return getattr(self.func, "__name__", type(self.func).__name__)


type MiddlewareRef = Named | Inline


def as_ref(value: Any) -> MiddlewareRef:
    """Normalize a route's middleware entry into a ``MiddlewareRef``.

    Raises ``ConfigurationError`` for anything that is neither a name
    nor a callable.
    """
    match value:
        case Named() | Inline():
            return value
        case str():
            if not value:
                msg = "Middleware name must not be empty."
                raise ConfigurationError(msg)
            return Named(value)
        case _ if callable(value):
            return Inline(value)
    msg = f"Middleware must be a name or a callable, got {type(value).__name__}."
    raise ConfigurationError(msg)
