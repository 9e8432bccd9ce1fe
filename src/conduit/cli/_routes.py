"""``conduit routes`` — list registered routes."""

import argparse
import sys

from conduit.cli._resolve import resolve_app
from conduit.routing.route import RouteEntry, constraint_key


def format_routes(routes: list[RouteEntry]) -> str:
    """Render routes as a METHOD / PATH / CONSTRAINTS / HANDLER / MIDDLEWARE table."""
    rows = [("METHOD", "PATH", "CONSTRAINTS", "HANDLER", "MIDDLEWARE")]
    for route in routes:
        constraints = ", ".join(f"{k}={v}" for k, v in constraint_key(route.constraints))
        handler = getattr(route.handler, "__name__", repr(route.handler))
        middleware = ", ".join(ref.name for ref in route.store.middleware)
        rows.append((route.method, route.path, constraints or "-", handler, middleware or "-"))

    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]) - 1)]
    lines = []
    for row in rows:
        cells = [cell.ljust(width) for cell, width in zip(row, widths, strict=False)]
        lines.append("  ".join([*cells, row[-1]]))
    lines.insert(1, "-" * min(len(lines[0]), 80))
    return "\n".join(lines)


def run_routes(args: argparse.Namespace) -> None:
    """Print the route table for ``args.app``."""
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    routes = app.routes
    if not routes:
        print("No routes registered.")
        return
    print(format_routes(routes))
