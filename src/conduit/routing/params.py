"""Route pattern parsing.

Patterns use ``:name`` for parameters, ``:name(regex)`` for parameters
that must fully match a regular expression, and a trailing ``*`` for a
wildcard that captures the rest of the path::

    /users/:id
    /orders/:id(^\\d+$)
    /static/*
"""

import re

from conduit.errors import ConfigurationError
from conduit.routing.route import PathSegment

_PARAM_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def split_path(
    path: str,
    *,
    ignore_leading_slash: bool = True,
    ignore_trailing_slash: bool = True,
) -> list[str]:
    """Split a path (pattern or request) into its segments.

    With the ignore flags off, a leading or trailing slash shows up as
    an empty segment, so ``/users`` and ``/users/`` stay distinct.
    """
    parts = path.split("/")
    if ignore_leading_slash:
        while parts and parts[0] == "":
            parts.pop(0)
    if ignore_trailing_slash:
        while parts and parts[-1] == "":
            parts.pop()
    return parts


def parse_segment(part: str, *, case_sensitive: bool = True) -> PathSegment:
    """Parse one pattern segment."""
    if part == "*":
        return PathSegment(value=part, kind="wildcard", name="*")
    if not part.startswith(":"):
        if "*" in part:
            msg = f"Wildcard must be a whole segment, got {part!r}."
            raise ConfigurationError(msg)
        return PathSegment(value=part if case_sensitive else part.lower())

    body = part[1:]
    regex: re.Pattern[str] | None = None
    name = body
    if "(" in body:
        if not body.endswith(")"):
            msg = f"Unterminated regex in route segment {part!r}."
            raise ConfigurationError(msg)
        name, _, pattern = body.partition("(")
        try:
            regex = re.compile(pattern[:-1])
        except re.error as exc:
            msg = f"Invalid regex in route segment {part!r}: {exc}"
            raise ConfigurationError(msg) from exc
    if not _PARAM_NAME.fullmatch(name):
        msg = f"Invalid parameter name in route segment {part!r}."
        raise ConfigurationError(msg)
    return PathSegment(value=part, kind="param", name=name, regex=regex)


def parse_path(
    path: str,
    *,
    ignore_leading_slash: bool = True,
    ignore_trailing_slash: bool = True,
    case_sensitive: bool = True,
) -> list[PathSegment]:
    """Parse a route pattern into segments.

    Examples::

        "/users"        -> [PathSegment("users")]
        "/users/:id"    -> [PathSegment("users"), PathSegment(":id", kind="param", name="id")]
        "/static/*"     -> [PathSegment("static"), PathSegment("*", kind="wildcard", name="*")]

    Raises ``ConfigurationError`` for malformed segments, a wildcard
    that is not last, or a parameter name used twice.
    """
    parts = split_path(
        path,
        ignore_leading_slash=ignore_leading_slash,
        ignore_trailing_slash=ignore_trailing_slash,
    )
    segments = [parse_segment(part, case_sensitive=case_sensitive) for part in parts]

    seen: set[str] = set()
    for i, seg in enumerate(segments):
        if seg.is_wildcard and i != len(segments) - 1:
            msg = f"Wildcard '*' must be the last segment in {path!r}."
            raise ConfigurationError(msg)
        if seg.name is not None:
            if seg.name in seen:
                msg = f"Duplicate parameter {seg.name!r} in {path!r}."
                raise ConfigurationError(msg)
            seen.add(seg.name)
    return segments
