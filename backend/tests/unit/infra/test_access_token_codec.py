"""Unit tests for the PyJWT access token codec."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import jwt
import pytest
from authgate.infra import PyJWTAccessTokenCodec
from authgate.services._shared.errors import InvalidAccessToken
from tests.factories.user import UserFactory
from tests.helpers.clock import T0


@pytest.fixture()
def principal():
    return UserFactory.build(id=7, username="alice", role="Admin")


class TestIssue:
    def test_claims(self, codec, settings, principal):
        """
        GIVEN a user
        WHEN an access token is issued at T0
        THEN it carries identity, role, issuer, audience and a 15 minute expiry.
        """
        out = codec.issue(principal)

        claims = jwt.decode(
            out.token,
            settings.secret,
            algorithms=["HS256"],
            audience=settings.audience,
            options={"verify_exp": False, "verify_iat": False},
        )
        assert claims["sub"] == "7"
        assert claims["username"] == "alice"
        assert claims["role"] == "Admin"
        assert claims["iss"] == settings.issuer
        assert claims["type"] == "access"
        assert claims["jti"]
        assert claims["iat"] == int(T0.timestamp())
        assert claims["exp"] == int((T0 + timedelta(minutes=15)).timestamp())
        assert out.expires_at == T0 + timedelta(minutes=15)

    def test_each_token_gets_unique_jti(self, codec, principal):
        a = codec.decode(codec.issue(principal).token)
        b = codec.decode(codec.issue(principal).token)
        assert a["jti"] != b["jti"]


class TestDecode:
    def test_roundtrip(self, codec, principal):
        claims = codec.decode(codec.issue(principal).token)
        assert claims["sub"] == "7"

    def test_expiry_uses_injected_clock(self, codec, clock, principal):
        """
        GIVEN a token issued at T0
        WHEN the clock reaches the expiry instant
        THEN decode rejects it, one second earlier it is accepted.
        """
        token = codec.issue(principal).token

        clock.advance(minutes=15, seconds=-1)
        assert codec.decode(token)["sub"] == "7"

        clock.advance(seconds=1)
        with pytest.raises(InvalidAccessToken, match="expired"):
            codec.decode(token)

    def test_rejects_wrong_signature(self, settings, clock, principal):
        other = PyJWTAccessTokenCodec(
            replace(settings, secret=b"another-signing-key-with-32-bytes-minimum"), clock=clock
        )
        token = other.issue(principal).token
        with pytest.raises(InvalidAccessToken):
            PyJWTAccessTokenCodec(settings, clock=clock).decode(token)

    @pytest.mark.parametrize("field", ["issuer", "audience"])
    def test_rejects_foreign_issuer_or_audience(self, settings, clock, principal, field):
        foreign = PyJWTAccessTokenCodec(replace(settings, **{field: "someone-else"}), clock=clock)
        token = foreign.issue(principal).token
        with pytest.raises(InvalidAccessToken):
            PyJWTAccessTokenCodec(settings, clock=clock).decode(token)

    def test_rejects_non_access_type(self, codec, settings):
        token = jwt.encode(
            {
                "sub": "1",
                "jti": "x",
                "iat": int(T0.timestamp()),
                "exp": int((T0 + timedelta(minutes=5)).timestamp()),
                "iss": settings.issuer,
                "aud": settings.audience,
                "type": "refresh",
            },
            settings.secret,
            algorithm="HS256",
        )
        with pytest.raises(InvalidAccessToken, match="Wrong token type"):
            codec.decode(token)

    def test_rejects_missing_claims(self, codec, settings):
        token = jwt.encode({"sub": "1", "type": "access"}, settings.secret, algorithm="HS256")
        with pytest.raises(InvalidAccessToken):
            codec.decode(token)

    def test_rejects_garbage(self, codec):
        with pytest.raises(InvalidAccessToken):
            codec.decode("not-a-jwt")
