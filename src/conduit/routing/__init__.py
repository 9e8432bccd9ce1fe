"""Routing — method, path, and constraint matching.

Routes can be registered and removed at any time. ``Router.find``
returns the handler, captured params, and the route's store.
"""

from conduit.routing.route import RouteEntry, RouteMatch, RouteStore
from conduit.routing.router import Router

__all__ = ["RouteEntry", "RouteMatch", "RouteStore", "Router"]
