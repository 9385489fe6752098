"""Authentication endpoints using the service layer."""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, current_app, g, request

from authgate.api.deps import (
    get_auth_service,
    json_response,
    require_auth,
    require_role,
    service_call,
    timing,
)
from authgate.core.extensions import limiter
from authgate.models import ROLE_ADMIN
from authgate.schemas import (
    LoginResponseSchema,
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    RegisterSchema,
    TokenPairSchema,
    UserSchema,
)
from authgate.services.auth import LoginIn, LogoutIn, RefreshIn, RegisterIn

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
token_pair_schema = TokenPairSchema()
login_response_schema = LoginResponseSchema()
user_schema = UserSchema()
user_list_schema = UserSchema(many=True)


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


@bp.post("/register")
@timing
def register():
    """Register a new ``User`` account and return its public representation."""

    data = register_schema.load(_json_body())
    service = get_auth_service()
    user = service_call(service, service.register, RegisterIn(**data))
    return json_response(user_schema.dump(user), status=201)


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and issue an access/refresh token pair."""

    data = login_schema.load(_json_body())
    service = get_auth_service()
    result = service_call(service, service.login, LoginIn(**data))
    body = {
        **asdict(result.tokens),
        "username": result.username,
        "role": result.role,
    }
    return json_response(login_response_schema.dump(body))


@bp.post("/refresh")
@timing
def refresh():
    """Rotate a refresh token into a new token pair."""

    data = refresh_schema.load(_json_body())
    service = get_auth_service()
    pair = service_call(service, service.refresh, RefreshIn(**data))
    return json_response(token_pair_schema.dump(pair))


@bp.post("/logout")
@require_auth
@timing
def logout():
    """Revoke the given refresh token of the caller, or every one of them."""

    data = logout_schema.load(_json_body())
    service = get_auth_service()
    service_call(
        service,
        service.logout,
        LogoutIn(user_id=g.user_id, refresh_token=data.get("refresh_token")),
    )
    return json_response({"message": "Logged out successfully"})


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user profile."""

    service = get_auth_service()
    user = service_call(service, service.whoami, g.user_id)
    return json_response(user_schema.dump(user))


@bp.get("/admin/users")
@require_role(ROLE_ADMIN)
@timing
def list_users():
    """List every account (admins only)."""

    service = get_auth_service()
    users = service_call(service, service.list_users)
    return json_response(user_list_schema.dump(users))
