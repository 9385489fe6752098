"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`authgate.services` without knowing internal structure.

Re-exports
----------
- Base primitives (from ``authgate.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

Use-case services live in subpackages:

- :mod:`authgate.services.tokens`: :class:`TokenLifecycleManager`
- :mod:`authgate.services.auth`: :class:`AuthGateService`
"""

from __future__ import annotations

# Base primitives (service base + request-scoped context)
from ._shared.base import BaseService, ServiceContext

__all__ = [
    "BaseService",
    "ServiceContext",
]
