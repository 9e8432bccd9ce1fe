"""ASGI handler — the per-request dispatch pipeline.

The only component that turns a raw ASGI exchange into conduit types.
For each request::

    resolve route ──no match──> 404 (NOT_FOUND)
        │
    before hooks → route middleware → handler → after hooks   (DONE)
        │ any exception
    error hooks → 500 unless a hook finalized the response     (FAILED)

Every step is awaited before the next starts. A middleware returning
``HALT`` ends the request early without running the handler or the
after hooks; that still counts as DONE.
"""

import logging
from contextvars import Token
from enum import Enum

from conduit._internal.asgi import Receive, Scope, Send
from conduit._internal.invoke import invoke
from conduit.context import RequestContext, context_var
from conduit.hooks import HookPhase
from conduit.http.request import Request
from conduit.middleware.protocol import should_halt
from conduit.pipeline import PipelineConfiguration
from conduit.routing.route import RouteMatch
from conduit.server.errors import handle_failure

logger = logging.getLogger("conduit.server")


class DispatchOutcome(Enum):
    """Terminal state of one dispatch. Reached exactly once per request."""

    NOT_FOUND = "not_found"
    DONE = "done"
    FAILED = "failed"


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    pipeline: PipelineConfiguration,
) -> DispatchOutcome | None:
    """Process a single HTTP request through the full pipeline.

    Returns the terminal state, or ``None`` for non-HTTP scopes.
    """
    if scope["type"] != "http":
        return None

    request = Request.from_asgi(scope, receive)
    match = pipeline.router.find(request.method, request.path, {"host": request.host})
    if match is None:
        logger.debug("404 %s %s", request.method, request.target)
        await RequestContext(request, send).set_status(404).end()
        return DispatchOutcome.NOT_FOUND

    ctx = RequestContext(request, send, params=match.params, store=match.store.extra)
    token: Token[RequestContext] = context_var.set(ctx)
    try:
        try:
            await _dispatch(ctx, match, pipeline)
        except Exception as exc:
            await handle_failure(ctx, exc, pipeline)
            return DispatchOutcome.FAILED

        if not ctx.finalized:
            # Left open by the application; end it so the client gets a response.
            logger.debug(
                "%s %s not finalized by the application, closing with %d",
                request.method,
                request.path,
                ctx.status,
            )
            await ctx.end()
        return DispatchOutcome.DONE
    finally:
        context_var.reset(token)


async def _dispatch(
    ctx: RequestContext,
    match: RouteMatch,
    pipeline: PipelineConfiguration,
) -> None:
    """Run before hooks, middleware, handler, and after hooks in order."""
    for hook in pipeline.hooks.hooks(HookPhase.BEFORE):
        await invoke(hook, ctx)

    for ref in match.store.middleware:
        middleware = pipeline.middleware.resolve(ref)
        if should_halt(await invoke(middleware, ctx)):
            logger.debug(
                "middleware %s halted %s %s", ref.name, ctx.request.method, ctx.path
            )
            return

    await invoke(match.handler, ctx)

    for hook in pipeline.hooks.hooks(HookPhase.AFTER):
        await invoke(hook, ctx)
