"""Test utilities for conduit applications::

    from conduit.testing import TestClient
"""

from conduit.testing.client import TestClient, TestResponse

__all__ = ["TestClient", "TestResponse"]
