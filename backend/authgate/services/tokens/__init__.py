"""Refresh/access token lifecycle (issuance, rotation, revocation, cleanup)."""

from __future__ import annotations

from .dto import (
    REASON_EXPIRED,
    REASON_LOGOUT,
    REASON_MANUAL,
    REASON_ROTATED,
    REASON_SUPERSEDED,
    AccessTokenOut,
    RefreshResult,
    RefreshStatus,
    SessionOut,
    TokenView,
)
from .manager import MAX_GENERATION_ATTEMPTS, TokenLifecycleManager

__all__ = [
    "AccessTokenOut",
    "MAX_GENERATION_ATTEMPTS",
    "REASON_EXPIRED",
    "REASON_LOGOUT",
    "REASON_MANUAL",
    "REASON_ROTATED",
    "REASON_SUPERSEDED",
    "RefreshResult",
    "RefreshStatus",
    "SessionOut",
    "TokenLifecycleManager",
    "TokenView",
]
