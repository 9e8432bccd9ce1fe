"""Global lifecycle hooks.

Hooks run for every matched request regardless of route:

- ``before`` hooks run ahead of the route middleware (set up session or
  auth context, start timers).
- ``after`` hooks run once the handler returns normally.
- ``error`` hooks run when anything in the before/middleware/handler/after
  chain raises. They receive ``(ctx, exc)``.

Each phase is an ordered list; duplicates are allowed and run in
registration order. The registry is a passive store, the dispatch
pipeline decides when each list runs.
"""

from collections.abc import Callable
from enum import StrEnum
from typing import Any

from conduit.errors import ConfigurationError


class HookPhase(StrEnum):
    """The three points in the pipeline where global hooks run."""

    BEFORE = "before"
    AFTER = "after"
    ERROR = "error"


class HookRegistry:
    """Three ordered hook lists, one per ``HookPhase``."""

    __slots__ = ("_hooks",)

    def __init__(self) -> None:
        self._hooks: dict[HookPhase, list[Callable[..., Any]]] = {
            phase: [] for phase in HookPhase
        }

    def add(self, phase: HookPhase | str, hook: Callable[..., Any]) -> None:
        """Append *hook* to the list for *phase*."""
        if not callable(hook):
            msg = f"Hook must be callable, got {type(hook).__name__}."
            raise ConfigurationError(msg)
        self._hooks[_coerce_phase(phase)].append(hook)

    def hooks(self, phase: HookPhase | str) -> tuple[Callable[..., Any], ...]:
        """Snapshot of the hooks for *phase*, in registration order."""
        return tuple(self._hooks[_coerce_phase(phase)])

    def __len__(self) -> int:
        return sum(len(hooks) for hooks in self._hooks.values())


def _coerce_phase(phase: HookPhase | str) -> HookPhase:
    try:
        return HookPhase(phase)
    except ValueError:
        allowed = ", ".join(p.value for p in HookPhase)
        msg = f"Unknown hook phase {phase!r}. Expected one of: {allowed}."
        raise ConfigurationError(msg) from None
