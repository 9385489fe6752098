# authgate/services/tokens/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from authgate.services._shared.errors import (
    ExpiredToken,
    InvalidToken,
    RevokedToken,
    TokenError,
)

# ------------------------------ Reasons ----------------------------------- #

REASON_SUPERSEDED = "superseded by new issuance"
REASON_ROTATED = "rotated"
REASON_EXPIRED = "expired"
REASON_MANUAL = "manually revoked"
REASON_LOGOUT = "logout / security revocation"


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class AccessTokenOut:
    """
    Signed access token and its absolute expiry.

    :param token: Encoded JWT.
    :type token: str
    :param expires_at: Aware UTC expiry (``exp`` claim).
    :type expires_at: datetime
    """

    token: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class SessionOut:
    """
    Freshly persisted refresh token.

    :param refresh_token: Opaque value for the client.
    :type refresh_token: str
    :param refresh_expires_at: Aware UTC expiry.
    :type refresh_expires_at: datetime
    :param token_id: Row id, safe to log.
    :type token_id: int
    """

    refresh_token: str
    refresh_expires_at: datetime
    token_id: int

    def __repr__(self) -> str:
        return f"SessionOut(token_id={self.token_id}, refresh_expires_at={self.refresh_expires_at!r})"


@dataclass(frozen=True, slots=True)
class TokenView:
    """
    Read-model of a refresh token that never exposes its value.

    :ivar id: Row id.
    :ivar user_id: Owner user id.
    :ivar created_at: Issuance time (aware UTC).
    :ivar expires_at: Expiry (aware UTC).
    """

    id: int
    user_id: int
    created_at: datetime
    expires_at: datetime


class RefreshStatus(Enum):
    """Outcome of a refresh attempt."""

    OK = "ok"
    INVALID = "invalid"
    REVOKED = "revoked"
    EXPIRED = "expired"


_STATUS_ERRORS: dict[RefreshStatus, type[TokenError]] = {
    RefreshStatus.INVALID: InvalidToken,
    RefreshStatus.REVOKED: RevokedToken,
    RefreshStatus.EXPIRED: ExpiredToken,
}


@dataclass(frozen=True, slots=True)
class RefreshResult:
    """
    Structured outcome of :meth:`TokenLifecycleManager.refresh`.

    Only ``OK`` results carry tokens; every other status carries ``None``.
    """

    status: RefreshStatus
    user_id: int | None = None
    access: AccessTokenOut | None = None
    session: SessionOut | None = None

    @property
    def ok(self) -> bool:
        return self.status is RefreshStatus.OK

    def raise_for_status(self) -> RefreshResult:
        """
        Raise the typed :class:`TokenError` for non-OK outcomes.

        :returns: ``self`` when the status is ``OK`` (allows chaining).
        :raises InvalidToken | RevokedToken | ExpiredToken: Otherwise.
        """
        error = _STATUS_ERRORS.get(self.status)
        if error is not None:
            raise error()
        return self
