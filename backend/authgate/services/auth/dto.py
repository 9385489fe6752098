# authgate/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for self-service registration.

    :param username: Desired login handle (trimmed by the model).
    :type username: str
    :param password: Raw password (hashed before persistence).
    :type password: str
    """

    username: str
    password: str


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param username: Login handle.
    :type username: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    username: str
    password: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque refresh token issued at login or last rotation.
    :type refresh_token: str
    """

    refresh_token: str

    def __repr__(self) -> str:
        return "RefreshIn(refresh_token=<redacted>)"


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    :param user_id: Caller id taken from the verified access token.
    :type user_id: int
    :param refresh_token: Token to revoke; ``None`` revokes every session.
    :type refresh_token: str | None
    """

    user_id: int
    refresh_token: str | None = None

    def __repr__(self) -> str:
        return f"LogoutIn(user_id={self.user_id}, all_sessions={self.refresh_token is None})"


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserOut:
    """Public view of a user (never includes the password hash)."""

    id: int
    username: str
    role: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens and their expiries.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Opaque refresh token.
    :type refresh_token: str
    :param access_token_expiry: Aware UTC expiry of the access token.
    :type access_token_expiry: datetime
    :param refresh_token_expiry: Aware UTC expiry of the refresh token.
    :type refresh_token_expiry: datetime
    """

    access_token: str
    refresh_token: str
    access_token_expiry: datetime
    refresh_token_expiry: datetime
    token_type: str = "bearer"

    def __repr__(self) -> str:
        return (
            "TokenPairOut(access_token=<redacted>, refresh_token=<redacted>, "
            f"access_token_expiry={self.access_token_expiry!r}, "
            f"refresh_token_expiry={self.refresh_token_expiry!r})"
        )


@dataclass(frozen=True, slots=True)
class LoginOut:
    """Token pair plus the identity it was issued for."""

    tokens: TokenPairOut
    username: str
    role: str
