"""Authentication gate service and its DTOs."""

from __future__ import annotations

from .dto import LoginIn, LoginOut, LogoutIn, RefreshIn, RegisterIn, TokenPairOut, UserOut
from .service import AuthGateService

__all__ = [
    "AuthGateService",
    "LoginIn",
    "LoginOut",
    "LogoutIn",
    "RefreshIn",
    "RegisterIn",
    "TokenPairOut",
    "UserOut",
]
