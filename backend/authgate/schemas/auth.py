"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate


class RegisterSchema(Schema):
    """Input payload for account registration.

    Unknown keys (a client-supplied ``role`` included) are dropped; public
    registration always creates a ``User``.
    """

    class Meta:
        unknown = EXCLUDE

    username = fields.String(
        required=True,
        validate=validate.And(validate.Length(min=3, max=50), validate.Regexp(r"^\S(.*\S)?$")),
    )
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=6, max=100))


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    username = fields.String(required=True, validate=validate.Length(min=1, max=50))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))


class RefreshSchema(Schema):
    """Input payload carrying the refresh token to rotate."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1, max=128))


class LogoutSchema(Schema):
    """Optional refresh token; without it every session of the caller ends."""

    refresh_token = fields.String(load_default=None, allow_none=True, validate=validate.Length(min=1))


class TokenPairSchema(Schema):
    """Response payload returned by refresh."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    access_token_expiry = fields.DateTime(format="iso", required=True)
    refresh_token_expiry = fields.DateTime(format="iso", required=True)
    token_type = fields.String(dump_default="bearer")


class LoginResponseSchema(TokenPairSchema):
    """Token pair plus the authenticated identity."""

    username = fields.String(required=True)
    role = fields.String(required=True)
