from __future__ import annotations

from typing import Protocol


class RefreshTokenGenerator(Protocol):
    """Port producing opaque, unpredictable refresh token values."""

    def generate(self) -> str: ...
