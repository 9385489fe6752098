from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from authgate.services.tokens.dto import AccessTokenOut


class Principal(Protocol):
    """Anything that can be asserted in an access token (e.g. a ``User`` row)."""

    id: int
    username: str
    role: str


class AccessTokenCodec(Protocol):
    """Port for signing and verifying short-lived access tokens."""

    def issue(self, principal: Principal) -> AccessTokenOut:
        """Return a signed token asserting ``principal`` and its expiry."""
        ...

    def decode(self, token: str) -> dict[str, Any]:
        """
        Verify signature, expiry, issuer and audience and return the claims.

        :raises InvalidAccessToken: On any verification failure.
        """
        ...
