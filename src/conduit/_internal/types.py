"""Shared type aliases used across conduit modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler: receives the RequestContext
Handler: TypeAlias = Callable[..., Any]

# before/after hook: receives the RequestContext
Hook: TypeAlias = Callable[..., Any]

# error hook: receives (RequestContext, exception)
ErrorHook: TypeAlias = Callable[..., Any]
