"""Conduit — request dispatch with global hooks and per-route middleware.

Every matched request runs through the same pipeline: ``before`` hooks,
the route's middleware, the handler, then ``after`` hooks. Failures go
to the ``error`` hooks, and the response is always finalized.

Basic usage::

    from conduit import App, HALT

    app = App()

    @app.middleware("auth")
    async def auth(ctx):
        if "authorization" not in ctx.request.headers:
            await ctx.set_status(401).end()
            return HALT

    @app.route("/users/:id", middleware=["auth"])
    async def show_user(ctx):
        await ctx.send({"id": ctx.params["id"]})

Serve it with any ASGI server, or ``app.run()`` with ``conduit[server]``.
"""

__version__ = "0.1.0"
__all__ = [
    "CONTINUE",
    "HALT",
    "App",
    "AppConfig",
    "ConduitError",
    "ConfigurationError",
    "ControlSignal",
    "HookPhase",
    "MiddlewareNotFound",
    "Request",
    "RequestContext",
    "ResponseState",
    "Router",
    "get_context",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import conduit`` fast while providing a clean top-level API.
    """
    if name == "App":
        from conduit.app import App

        return App

    if name == "AppConfig":
        from conduit.config import AppConfig

        return AppConfig

    if name == "Request":
        from conduit.http.request import Request

        return Request

    if name == "Router":
        from conduit.routing.router import Router

        return Router

    if name == "HookPhase":
        from conduit.hooks import HookPhase

        return HookPhase

    if name in ("RequestContext", "ResponseState", "get_context"):
        from conduit import context as _ctx

        return getattr(_ctx, name)

    if name in ("CONTINUE", "HALT", "ControlSignal"):
        from conduit.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("ConduitError", "ConfigurationError", "MiddlewareNotFound"):
        from conduit import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
