"""Refresh token generation and password hashing adapters."""

from .secure_refresh_token_generator import SecureRefreshTokenGenerator
from .werkzeug_password_hasher import WerkzeugPasswordHasher

__all__ = ["SecureRefreshTokenGenerator", "WerkzeugPasswordHasher"]
