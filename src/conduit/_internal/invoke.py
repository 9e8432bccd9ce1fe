"""Invoke helpers — call sync or async callables uniformly.

Hooks, middleware, and handlers can be ``def`` or ``async def``. Any code
that calls a user-provided callable goes through here so the sync/async
check lives in exactly one place.

Usage::

    from conduit._internal.invoke import invoke

    result = await invoke(hook, ctx)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it's awaitable.

    Works with both sync and async callables::

        def stamp(ctx):
            ctx.set_headers({"X-Served-By": "conduit"})

        async def load_user(ctx):
            ctx.session = await sessions.load(ctx.request.headers.get("cookie"))
    """
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
