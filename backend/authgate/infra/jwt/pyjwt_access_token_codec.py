# authgate/infra/jwt/pyjwt_access_token_codec.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from authgate.core.token_settings import TokenSettings
from authgate.services._shared.errors import InvalidAccessToken
from authgate.services._shared.ports import AccessTokenCodec, Clock, Principal, system_clock
from authgate.services.tokens.dto import AccessTokenOut

ACCESS_TOKEN_TYPE = "access"
REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub", "jti"]


@dataclass(slots=True)
class PyJWTAccessTokenCodec(AccessTokenCodec):
    """
    HS256 access token codec backed by PyJWT.

    Every setting comes from the injected :class:`TokenSettings`; nothing is
    read from the Flask application here, so the codec also works outside a
    request.

    .. note::
       ``exp`` and ``iat`` are whole seconds, so the reported expiry is
       truncated to the second as well.
    """

    settings: TokenSettings
    clock: Clock = field(default=system_clock)

    def issue(self, principal: Principal) -> AccessTokenOut:
        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + self.settings.access_ttl
        claims: dict[str, Any] = {
            "sub": str(principal.id),
            "username": principal.username,
            "role": principal.role,
            "jti": uuid4().hex,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "iss": self.settings.issuer,
            "aud": self.settings.audience,
            "type": ACCESS_TOKEN_TYPE,
        }
        token = jwt.encode(claims, self.settings.secret, algorithm=self.settings.algorithm)
        return AccessTokenOut(token=token, expires_at=expires_at)

    def decode(self, token: str) -> dict[str, Any]:
        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                self.settings.secret,
                algorithms=[self.settings.algorithm],
                audience=self.settings.audience,
                issuer=self.settings.issuer,
                leeway=timedelta(0),
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.PyJWTError as exc:
            raise InvalidAccessToken() from exc

        # Time-based claims are checked against the injected clock.
        expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=UTC)
        if self.clock() >= expires_at:
            raise InvalidAccessToken("Access token has expired")
        if claims.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidAccessToken("Wrong token type: access token required")
        return claims
