"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP. They serve as stable contracts between repositories, the
token lifecycle manager, and application services.

The translation to HTTP responses (RFC 7807) is handled by
``authgate/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str, *, column: str | None = None) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g., 'uq_users_username').
    column : str | None
        Optional ``table.column`` fallback for dialects that report the
        column instead of the constraint name (SQLite).

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    if constraint_name.lower() in message:
        return True
    return column is not None and column.lower() in message


class ConfigurationError(Exception):
    """
    Raised at startup when the token configuration is unusable.

    Not a :class:`ServiceError`: the application must refuse to start rather
    than translate this into a response.
    """


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from repositories or domain logic.
    - The API layer or BaseService will later translate them to APIError.
    """

    pass


# --------------------------------------------------------------------------- #
# Specific domain-level errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key. Omitted from the message when ``None``.
    :type key: str | int | None
    """

    entity: str
    key: str | int | None = None

    def __str__(self) -> str:
        if self.key is None:
            return f"{self.entity} not found"
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class AuthenticationError(ServiceError):
    """
    Raised when credentials are rejected.

    The message is identical for unknown users and wrong passwords.
    """

    def __init__(self, message: str = "Invalid username or password") -> None:
        super().__init__(message)


class AuthorizationError(ServiceError):
    """Raised when an authenticated caller lacks the required role."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class StoreUnavailable(ServiceError):
    """
    Raised when the credential store cannot be reached or a lock/statement
    timeout elapses. Never retried inside the service layer.
    """

    def __init__(self, message: str = "Credential store unavailable") -> None:
        super().__init__(message)


class InvalidAccessToken(ServiceError):
    """Raised when an access token fails signature, expiry, issuer or audience checks."""

    def __init__(self, message: str = "Invalid access token") -> None:
        super().__init__(message)


# --------------------------------------------------------------------------- #
# Refresh token outcomes
# --------------------------------------------------------------------------- #


class TokenError(ServiceError):
    """Base class for refresh token failures. Messages never include the token."""

    default_message = "Refresh token rejected"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidToken(TokenError):
    """The presented refresh token does not exist."""

    default_message = "Invalid refresh token. Please log in again."


class RevokedToken(TokenError):
    """The presented refresh token was already revoked; the session was terminated."""

    default_message = "Refresh token has been revoked. Please log in again."


class ExpiredToken(TokenError):
    """The presented refresh token is past its expiry."""

    default_message = "Refresh token has expired. Please log in again."
