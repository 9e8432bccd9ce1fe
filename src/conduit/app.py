"""Conduit application class.

Registration facade over the router, the named middleware registry, and
the global hook lists, plus the ASGI entry point that feeds each request
into the dispatch pipeline.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from conduit._internal.asgi import Receive, Scope, Send
from conduit._internal.types import ErrorHook, Handler, Hook
from conduit.config import AppConfig
from conduit.errors import ConfigurationError
from conduit.hooks import HookPhase
from conduit.middleware.protocol import MiddlewareRef, as_ref
from conduit.pipeline import PipelineConfiguration
from conduit.routing.route import RouteEntry, RouteStore
from conduit.routing.router import Router
from conduit.server.handler import handle_request

logger = logging.getLogger("conduit.server")

class App:
    """The conduit application.

    Usage::

        app = App()

        app.register_middleware("auth", require_token)

        @app.before
        async def load_session(ctx):
            ctx.session = await sessions.load(ctx.request)

        @app.route("/users/:id", middleware=["auth"])
        async def show_user(ctx):
            await ctx.send({"id": ctx.params["id"]})

    Registration is meant to happen before serving, but nothing is
    frozen: routes can be added or removed while the app runs.
    """

    __slots__ = ("_pipeline", "config")

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._pipeline = PipelineConfiguration.create(self.config)

    @property
    def pipeline(self) -> PipelineConfiguration:
        """The configuration handed to the dispatch pipeline."""
        return self._pipeline

    @property
    def router(self) -> Router:
        return self._pipeline.router

    @property
    def routes(self) -> list[RouteEntry]:
        """All registered routes."""
        return self._pipeline.router.routes

    # -- Route registration --

    def on(
        self,
        method: str | Iterable[str],
        path: str,
        options: Mapping[str, Any] | Handler | None = None,
        handler: Handler | Any = None,
        extra: Any = None,
    ) -> None:
        """Register a route.

        Two call shapes are accepted::

            app.on("GET", "/health", health)                     # no options
            app.on("GET", "/health", health, {"probe": True})    # no options, with extra
            app.on("GET", "/users/:id", {"middleware": ["auth"]}, show_user, extra)

        Options:
            middleware: list of middleware names and/or callables, run in order.
            override: replace an existing route with the same method, path,
                and constraints instead of raising ``ConfigurationError``.
            constraints: passed to the router, e.g. ``{"host": "api.example.com"}``.

        ``extra`` is stored with the route and handed to handlers as
        ``ctx.store``.
        """
        if callable(options) and not isinstance(options, Mapping):
            # on(method, path, handler[, extra])
            options, handler, extra = None, options, handler if handler is not None else extra
        if handler is None:
            msg = f"No handler given for route {path!r}."
            raise ConfigurationError(msg)

        router_options = dict(options or {})
        middleware = router_options.pop("middleware", None)
        override = bool(router_options.pop("override", False))
        store = RouteStore(middleware=_middleware_refs(middleware), extra=extra)

        self._pipeline.router.on(method, path, router_options, handler, store, override=override)

    def route(
        self,
        path: str,
        *,
        methods: str | Iterable[str] = ("GET",),
        middleware: Iterable[Any] = (),
        override: bool = False,
        extra: Any = None,
        **router_options: Any,
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Args:
            path: Route pattern. Use ``:name`` for params, ``:name(regex)``
                for constrained params, and a trailing ``*`` for a wildcard.
            methods: HTTP method or methods. Defaults to ``GET``.
            middleware: Middleware names and/or callables, run in order.
            override: Replace an existing route instead of raising.
            extra: Opaque metadata exposed to the handler as ``ctx.store``.
            **router_options: Passed through to the router (``constraints``).
        """

        def decorator(func: Handler) -> Handler:
            options = {"middleware": list(middleware), "override": override, **router_options}
            self.on(methods, path, options, func, extra)
            return func

        return decorator

    def off(
        self,
        method: str | Iterable[str],
        path: str,
        constraints: Mapping[str, Any] | None = None,
    ) -> bool:
        """Remove a route. Returns ``False`` if nothing matched."""
        return self._pipeline.router.off(method, path, constraints)

    # -- Middleware --

    def register_middleware(self, name: str, middleware: Callable[..., Any]) -> None:
        """Register a named middleware that routes can reference by name."""
        self._pipeline.middleware.register(name, middleware)

    def middleware(self, name: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a named middleware via decorator."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.register_middleware(name, func)
            return func

        return decorator

    # -- Hooks --

    def register_hook(self, hook: Hook | ErrorHook, phase: HookPhase | str = HookPhase.BEFORE) -> None:
        """Add a global hook for *phase* (``"before"``, ``"after"``, or ``"error"``)."""
        self._pipeline.hooks.add(phase, hook)

    def before(self, func: Hook) -> Hook:
        """Register a ``before`` hook via decorator."""
        self.register_hook(func, HookPhase.BEFORE)
        return func

    def after(self, func: Hook) -> Hook:
        """Register an ``after`` hook via decorator."""
        self.register_hook(func, HookPhase.AFTER)
        return func

    def on_error(self, func: ErrorHook) -> ErrorHook:
        """Register an ``error`` hook via decorator.

        Error hooks receive ``(ctx, exc)`` and may write a response. If
        none of them finalizes it, the request ends with a bare 500.
        """
        self.register_hook(func, HookPhase.ERROR)
        return func

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Start serving with pounce (``pip install conduit[server]``).

        Serves HTTPS when ``ssl_certfile`` and ``ssl_keyfile`` are set.
        """
        from conduit.server.dev import run_server

        run_server(self, host or self.config.host, port or self.config.port)

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        await handle_request(scope, receive, send, pipeline=self._pipeline)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Acknowledge the ASGI lifespan protocol."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                logger.debug("startup: %d route(s) registered", len(self._pipeline.router))
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return


def _middleware_refs(middleware: Any) -> tuple[MiddlewareRef, ...]:
    if middleware is None:
        return ()
    # A single name or callable is shorthand for a one-element list.
    if isinstance(middleware, str) or callable(middleware):
        middleware = [middleware]
    return tuple(as_ref(m) for m in middleware)
