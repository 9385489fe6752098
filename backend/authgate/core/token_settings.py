"""Explicit token configuration handed to the codec and lifecycle manager."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from authgate.services._shared.errors import ConfigurationError

MIN_SECRET_BYTES = 32


@dataclass(frozen=True, slots=True)
class TokenSettings:
    """
    Immutable token configuration.

    :param secret: HMAC signing key shared by issuer and verifier.
    :type secret: bytes
    :param issuer: ``iss`` claim value.
    :type issuer: str
    :param audience: ``aud`` claim value.
    :type audience: str
    :param access_ttl: Lifetime of access tokens.
    :type access_ttl: timedelta
    :param refresh_ttl: Lifetime of refresh tokens.
    :type refresh_ttl: timedelta
    :param retention: Minimum age before retired refresh tokens are purged.
    :type retention: timedelta
    :param algorithm: JWS algorithm (HMAC family only).
    :type algorithm: str
    """

    secret: bytes
    issuer: str
    audience: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=30)
    retention: timedelta = timedelta(days=30)
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not isinstance(self.secret, bytes | bytearray) or not self.secret:
            raise ConfigurationError("JWT signing key is missing.")
        if len(self.secret) < MIN_SECRET_BYTES:
            raise ConfigurationError(
                f"JWT signing key must be at least {MIN_SECRET_BYTES} bytes long."
            )
        if not self.algorithm.startswith("HS"):
            raise ConfigurationError("Only HMAC signing algorithms are supported.")
        if self.access_ttl <= timedelta(0) or self.refresh_ttl <= timedelta(0):
            raise ConfigurationError("Token lifetimes must be positive.")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> TokenSettings:
        """
        Build settings from a Flask config mapping.

        :param config: Usually ``app.config``.
        :returns: Validated settings.
        :raises ConfigurationError: When the signing key is absent or malformed.
        """
        raw = config.get("JWT_SECRET_KEY")
        secret = raw.encode("utf-8") if isinstance(raw, str) else raw
        try:
            return cls(
                secret=secret or b"",
                issuer=str(config.get("JWT_ISSUER", "authgate")),
                audience=str(config.get("JWT_AUDIENCE", "authgate-clients")),
                access_ttl=timedelta(minutes=int(config.get("ACCESS_TOKEN_TTL_MINUTES", 15))),
                refresh_ttl=timedelta(days=int(config.get("REFRESH_TOKEN_TTL_DAYS", 30))),
                retention=timedelta(days=int(config.get("REFRESH_TOKEN_RETENTION_DAYS", 30))),
                algorithm=str(config.get("JWT_ALGORITHM", "HS256")),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid token configuration: {exc}") from exc
