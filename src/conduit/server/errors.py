"""Error path for the dispatch pipeline.

Runs the global ``error`` hooks for a failed request, then makes sure
the exchange ends: if no hook finalized the response, it is closed with
status 500 and an empty body.
"""

import logging

from conduit._internal.invoke import invoke
from conduit.context import RequestContext
from conduit.hooks import HookPhase
from conduit.pipeline import PipelineConfiguration

logger = logging.getLogger("conduit.server")


async def run_error_hooks(
    ctx: RequestContext,
    exc: Exception,
    pipeline: PipelineConfiguration,
) -> None:
    """Run error hooks in order with ``(ctx, exc)``.

    A hook that raises ends the error path for this request; the
    remaining hooks are skipped and the failure is logged.
    """
    for hook in pipeline.hooks.hooks(HookPhase.ERROR):
        try:
            await invoke(hook, ctx, exc)
        except Exception:
            logger.exception(
                "error hook %s failed for %s %s",
                getattr(hook, "__name__", repr(hook)),
                ctx.request.method,
                ctx.path,
            )
            return


async def finalize_failed(ctx: RequestContext) -> None:
    """Close the exchange with a bare 500 unless it is already finalized.

    Headers the request set before failing are discarded if they were
    not flushed yet. Once they are on the wire the status can no longer
    change, so the exchange is simply closed.
    """
    if ctx.finalized:
        return
    await ctx.discard_pending().set_status(500).end()


async def handle_failure(
    ctx: RequestContext,
    exc: Exception,
    pipeline: PipelineConfiguration,
) -> None:
    """Log *exc*, run the error hooks, and guarantee a final status."""
    logger.exception("500 %s %s", ctx.request.method, ctx.path, exc_info=exc)
    try:
        await run_error_hooks(ctx, exc, pipeline)
    finally:
        await finalize_failed(ctx)
