"""Middleware — per-route steps that run between the before hooks and the handler.

A middleware is any callable matching:
    async def mw(ctx: RequestContext) -> ControlSignal | None

Returning ``HALT`` stops the request before the handler runs.
"""

from conduit.middleware.protocol import (
    CONTINUE,
    HALT,
    ControlSignal,
    Inline,
    Middleware,
    MiddlewareRef,
    Named,
    as_ref,
)
from conduit.middleware.registry import MiddlewareRegistry

__all__ = [
    "CONTINUE",
    "HALT",
    "ControlSignal",
    "Inline",
    "Middleware",
    "MiddlewareRef",
    "MiddlewareRegistry",
    "Named",
    "as_ref",
]
