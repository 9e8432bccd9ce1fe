"""Trie-based router.

Routes can be added and removed at any time; ``find`` walks the trie
segment by segment, trying static children first, then parameters, then
a wildcard, and backtracks when a branch dead-ends.

A route's identity is (method, path, constraints). Constraints are
matched against the values the caller passes to ``find`` (the dispatch
pipeline passes the request host), so the same path can be served by
different handlers per virtual host.
"""

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from conduit.config import AppConfig
from conduit.errors import ConfigurationError
from conduit.routing.params import parse_path, split_path
from conduit.routing.route import (
    ConstraintValue,
    PathSegment,
    RouteEntry,
    RouteMatch,
    RouteStore,
    constraint_key,
    normalize_constraints,
)

logger = logging.getLogger("conduit.routing")

ROUTER_OPTIONS = frozenset({"constraints"})


class _TrieNode:
    """A node in the route trie."""

    __slots__ = ("children", "entries", "param_edges", "wildcard")

    def __init__(self) -> None:
        # Static segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Parameter edges, regex-constrained ones first
        self.param_edges: list[_ParamEdge] = []
        # Wildcard child: consumes the rest of the path
        self.wildcard: _TrieNode | None = None
        # Routes ending here, keyed by HTTP method
        self.entries: dict[str, list[RouteEntry]] = {}


@dataclass(slots=True)
class _ParamEdge:
    name: str
    regex: re.Pattern[str] | None
    node: _TrieNode = field(default_factory=_TrieNode)

    def accepts(self, part: str) -> bool:
        return self.regex is None or self.regex.fullmatch(part) is not None


class Router:
    """Method + path (+ constraints) router.

    Usage::

        router = Router()
        router.on("GET", "/users/:id", None, show_user)
        match = router.find("GET", "/users/42")
        match.params   # {"id": "42"}
    """

    __slots__ = ("_count", "_root", "case_sensitive", "ignore_leading_slash", "ignore_trailing_slash")

    def __init__(
        self,
        *,
        ignore_trailing_slash: bool = True,
        ignore_leading_slash: bool = True,
        case_sensitive: bool = True,
    ) -> None:
        self.ignore_trailing_slash = ignore_trailing_slash
        self.ignore_leading_slash = ignore_leading_slash
        self.case_sensitive = case_sensitive
        self._root = _TrieNode()
        self._count = 0

    @classmethod
    def from_config(cls, config: AppConfig) -> "Router":
        """Build a router using the routing flags of *config*."""
        return cls(
            ignore_trailing_slash=config.ignore_trailing_slash,
            ignore_leading_slash=config.ignore_leading_slash,
            case_sensitive=config.case_sensitive,
        )

    # -- Registration --

    def on(
        self,
        method: str | Iterable[str],
        path: str,
        options: Mapping[str, Any] | None,
        handler: Callable[..., Any],
        store: RouteStore | None = None,
        *,
        override: bool = False,
    ) -> None:
        """Register *handler* for *method* and *path*.

        *options* accepts ``constraints``: a mapping of name to an exact
        string or a compiled regex (e.g. ``{"host": "api.example.com"}``).

        Raises ``ConfigurationError`` if the same (method, path,
        constraints) is already registered, unless *override* is set, in
        which case that entry is replaced. Nothing is removed or added
        when the options, handler, or pattern are invalid.
        """
        if not callable(handler):
            msg = f"Handler for {path!r} must be callable, got {type(handler).__name__}."
            raise ConfigurationError(msg)
        options = dict(options or {})
        unknown = set(options) - ROUTER_OPTIONS
        if unknown:
            msg = f"Unsupported router option(s) for {path!r}: {', '.join(sorted(unknown))}."
            raise ConfigurationError(msg)
        constraints = normalize_constraints(options.get("constraints"))
        store = store or RouteStore()

        methods = _methods(method)
        node = self._node_for(path, create=True)
        assert node is not None
        entries = [RouteEntry(m, path, handler, store, constraints) for m in methods]
        if not override:
            for entry in entries:
                if any(e.key[2] == entry.key[2] for e in node.entries.get(entry.method, ())):
                    msg = f"Method {entry.method!r} already declared for route {path!r}"
                    if constraints:
                        msg += f" with constraints {dict(constraint_key(constraints))}"
                    raise ConfigurationError(msg + ".")

        for entry in entries:
            bucket = node.entries.setdefault(entry.method, [])
            if override:
                kept = [e for e in bucket if e.key[2] != entry.key[2]]
                self._count -= len(bucket) - len(kept)
                bucket[:] = kept
            # Constrained routes are checked before catch-all ones.
            bucket.append(entry)
            bucket.sort(key=lambda e: not e.constraints)
            self._count += 1
            logger.debug("route added: %s %s", entry.method, path)

    def off(
        self,
        method: str | Iterable[str],
        path: str,
        constraints: Mapping[str, ConstraintValue] | None = None,
    ) -> bool:
        """Remove routes for *method* and *path*.

        With *constraints* ``None`` every constraint variant is removed,
        otherwise only the one with exactly those constraints. Returns
        ``True`` if anything was removed; unknown routes are a no-op.
        """
        node = self._node_for(path, create=False)
        if node is None:
            return False
        wanted = None if constraints is None else constraint_key(normalize_constraints(constraints))
        removed = False
        for m in _methods(method):
            bucket = node.entries.get(m)
            if not bucket:
                continue
            keep = [e for e in bucket if wanted is not None and e.key[2] != wanted]
            if len(keep) != len(bucket):
                removed = True
                self._count -= len(bucket) - len(keep)
                logger.debug("route removed: %s %s", m, path)
            if keep:
                node.entries[m] = keep
            else:
                del node.entries[m]
        return removed

    # -- Lookup --

    def find(
        self,
        method: str,
        path: str,
        constraints: Mapping[str, str | None] | None = None,
    ) -> RouteMatch | None:
        """Match a request against the registered routes.

        Returns a ``RouteMatch`` (handler, params, store) or ``None``.
        """
        parts = split_path(
            path,
            ignore_leading_slash=self.ignore_leading_slash,
            ignore_trailing_slash=self.ignore_trailing_slash,
        )
        given = dict(constraints or {})
        if isinstance(given.get("host"), str):
            given["host"] = given["host"].lower()
        return self._match(self._root, parts, 0, {}, method.upper(), given)

    def _match(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
        method: str,
        given: dict[str, Any],
    ) -> RouteMatch | None:
        if index == len(parts):
            match = self._select(node, params, method, given)
            if match is not None:
                return match
            # A wildcard also matches an empty remainder.
            if node.wildcard is not None:
                return self._select(node.wildcard, {**params, "*": ""}, method, given)
            return None

        part = parts[index]

        # 1. Static child (exact match)
        key = part if self.case_sensitive else part.lower()
        child = node.children.get(key)
        if child is not None:
            match = self._match(child, parts, index + 1, params, method, given)
            if match is not None:
                return match

        # 2. Parameter edges
        if part:
            for edge in node.param_edges:
                if edge.accepts(part):
                    match = self._match(
                        edge.node, parts, index + 1, {**params, edge.name: part}, method, given
                    )
                    if match is not None:
                        return match

        # 3. Wildcard: consumes the rest
        if node.wildcard is not None:
            remaining = "/".join(parts[index:])
            return self._select(node.wildcard, {**params, "*": remaining}, method, given)

        return None

    @staticmethod
    def _select(
        node: _TrieNode,
        params: dict[str, str],
        method: str,
        given: dict[str, Any],
    ) -> RouteMatch | None:
        for entry in node.entries.get(method, ()):
            if entry.satisfies(given):
                return RouteMatch(entry=entry, params=params)
        return None

    # -- Introspection --

    @property
    def routes(self) -> list[RouteEntry]:
        """All registered routes, depth-first in trie order."""
        result: list[RouteEntry] = []
        stack = [self._root]
        while stack:
            node = stack.pop()
            for bucket in node.entries.values():
                result.extend(bucket)
            if node.wildcard is not None:
                stack.append(node.wildcard)
            stack.extend(edge.node for edge in reversed(node.param_edges))
            stack.extend(reversed(list(node.children.values())))
        return result

    def __len__(self) -> int:
        return self._count

    # -- Internal --

    def _node_for(self, path: str, *, create: bool) -> _TrieNode | None:
        segments = parse_path(
            path,
            ignore_leading_slash=self.ignore_leading_slash,
            ignore_trailing_slash=self.ignore_trailing_slash,
            case_sensitive=self.case_sensitive,
        )
        node = self._root
        for seg in segments:
            nxt = _step(node, seg, create=create)
            if nxt is None:
                return None
            node = nxt
        return node


def _step(node: _TrieNode, seg: PathSegment, *, create: bool) -> _TrieNode | None:
    if seg.is_wildcard:
        if node.wildcard is None and create:
            node.wildcard = _TrieNode()
        return node.wildcard

    if seg.is_param:
        pattern = seg.regex.pattern if seg.regex is not None else None
        for edge in node.param_edges:
            edge_pattern = edge.regex.pattern if edge.regex is not None else None
            if edge.name == seg.name and edge_pattern == pattern:
                return edge.node
        if not create:
            return None
        edge = _ParamEdge(name=seg.name or "", regex=seg.regex)
        node.param_edges.append(edge)
        node.param_edges.sort(key=lambda e: e.regex is None)
        return edge.node

    child = node.children.get(seg.value)
    if child is None and create:
        child = node.children[seg.value] = _TrieNode()
    return child


def _methods(method: str | Iterable[str]) -> list[str]:
    methods = [method] if isinstance(method, str) else list(method)
    if not methods:
        msg = "At least one HTTP method is required."
        raise ConfigurationError(msg)
    return list(dict.fromkeys(m.upper() for m in methods))
