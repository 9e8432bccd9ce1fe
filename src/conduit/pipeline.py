"""Pipeline configuration — everything dispatch needs, in one object.

Built once by ``App`` and passed by reference into ``handle_request``
for every request. The registries it points at are populated during
setup and only read while serving.
"""

from dataclasses import dataclass

from conduit.config import AppConfig
from conduit.hooks import HookRegistry
from conduit.middleware.registry import MiddlewareRegistry
from conduit.routing.router import Router


@dataclass(frozen=True, slots=True)
class PipelineConfiguration:
    """Router, middleware registry, and hook lists for the dispatch pipeline."""

    router: Router
    middleware: MiddlewareRegistry
    hooks: HookRegistry
    config: AppConfig

    @classmethod
    def create(cls, config: AppConfig | None = None) -> "PipelineConfiguration":
        """Fresh, empty configuration for *config* (defaults if omitted)."""
        config = config or AppConfig()
        return cls(
            router=Router.from_config(config),
            middleware=MiddlewareRegistry(),
            hooks=HookRegistry(),
            config=config,
        )
