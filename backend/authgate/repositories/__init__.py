"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from authgate.repositories.base import BaseRepository, apply_sorting, parse_sort_tokens
from authgate.repositories.refresh_token import RefreshTokenRepository
from authgate.repositories.user import UserRepository

__all__ = [
    # Base
    "BaseRepository",
    "apply_sorting",
    "parse_sort_tokens",
    # Domain
    "RefreshTokenRepository",
    "UserRepository",
]
