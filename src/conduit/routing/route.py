"""Route entries, parsed path segments, and match results."""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from conduit.middleware.protocol import MiddlewareRef

type ConstraintValue = str | re.Pattern[str]


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route pattern.

    Static:   ``users``           (kind="static")
    Param:    ``:id``             (kind="param", name="id")
    Regex:    ``:id(^\\d+$)``     (kind="param", name="id", regex=...)
    Wildcard: ``*``               (kind="wildcard", name="*")
    """

    value: str
    kind: str = "static"
    name: str | None = None
    regex: re.Pattern[str] | None = None

    @property
    def is_param(self) -> bool:
        return self.kind == "param"

    @property
    def is_wildcard(self) -> bool:
        return self.kind == "wildcard"


@dataclass(frozen=True, slots=True)
class RouteStore:
    """What the dispatch pipeline needs from a route besides its handler.

    ``middleware`` is the normalized middleware chain; ``extra`` is the
    caller's opaque metadata, exposed to handlers as ``ctx.store``.
    """

    middleware: tuple[MiddlewareRef, ...] = ()
    extra: Any = None


@dataclass(frozen=True, slots=True)
class RouteEntry:
    """One registered route: identity is (method, path, constraints)."""

    method: str
    path: str
    handler: Callable[..., Any]
    store: RouteStore = field(default_factory=RouteStore)
    constraints: tuple[tuple[str, ConstraintValue], ...] = ()

    @property
    def key(self) -> tuple[str, str, tuple[tuple[str, str], ...]]:
        """Hashable identity used for duplicate detection."""
        return (self.method, self.path, constraint_key(self.constraints))

    def satisfies(self, given: Mapping[str, str | None]) -> bool:
        """True if every constraint on this route matches *given*."""
        for name, expected in self.constraints:
            actual = given.get(name)
            if actual is None:
                return False
            if isinstance(expected, re.Pattern):
                if expected.fullmatch(actual) is None:
                    return False
            elif actual != expected:
                return False
        return True


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful ``Router.find``."""

    entry: RouteEntry
    params: dict[str, str]

    @property
    def handler(self) -> Callable[..., Any]:
        return self.entry.handler

    @property
    def store(self) -> RouteStore:
        return self.entry.store


def normalize_constraints(
    constraints: Mapping[str, ConstraintValue] | None,
) -> tuple[tuple[str, ConstraintValue], ...]:
    """Sort constraints into a stable tuple; host values are lower-cased."""
    if not constraints:
        return ()
    items: list[tuple[str, ConstraintValue]] = []
    for name, value in sorted(constraints.items()):
        if isinstance(value, str) and name == "host":
            value = value.lower()
        items.append((name, value))
    return tuple(items)


def constraint_key(
    constraints: tuple[tuple[str, ConstraintValue], ...],
) -> tuple[tuple[str, str], ...]:
    return tuple(
        (name, f"re:{value.pattern}" if isinstance(value, re.Pattern) else value)
        for name, value in constraints
    )
