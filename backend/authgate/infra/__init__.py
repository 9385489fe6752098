"""Concrete adapters for the service-layer ports."""

from __future__ import annotations

from .jwt import PyJWTAccessTokenCodec
from .security import SecureRefreshTokenGenerator, WerkzeugPasswordHasher

__all__ = [
    "PyJWTAccessTokenCodec",
    "SecureRefreshTokenGenerator",
    "WerkzeugPasswordHasher",
]
