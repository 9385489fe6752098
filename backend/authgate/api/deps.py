"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, g, jsonify, request

from authgate.core.errors import Forbidden, Unauthorized
from authgate.services._shared.base import ServiceContext
from authgate.services._shared.errors import InvalidAccessToken, ServiceError
from authgate.services._shared.ports import AccessTokenCodec
from authgate.services.auth import AuthGateService
from authgate.services.tokens import TokenLifecycleManager

F = TypeVar("F", bound=Callable[..., Any])

BEARER_SCHEME = "bearer"


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


# ----------------------------- Wiring -----------------------------------------


def _component(name: str) -> Any:
    try:
        return current_app.extensions[name]
    except KeyError as exc:  # pragma: no cover - factory always installs them
        raise RuntimeError(f"Component '{name}' is not configured on the app.") from exc


def get_codec() -> AccessTokenCodec:
    """Return the access token codec built at application startup."""

    return cast(AccessTokenCodec, _component("token_codec"))


def get_token_manager() -> TokenLifecycleManager:
    """Build a :class:`TokenLifecycleManager` from the startup components."""

    return TokenLifecycleManager(
        settings=_component("token_settings"),
        codec=get_codec(),
        generator=_component("refresh_token_generator"),
        uow_factory=_component("uow_factory"),
        clock=_component("clock"),
    )


def get_auth_service() -> AuthGateService:
    """Build an :class:`AuthGateService` for the current request or CLI command."""

    ctx = ServiceContext(
        actor_id=getattr(g, "user_id", None),
        actor_role=getattr(g, "user_role", None),
        request_id=getattr(g, "request_id", None),
    )
    return AuthGateService(
        manager=get_token_manager(),
        codec=get_codec(),
        hasher=_component("password_hasher"),
        ctx=ctx,
    )


def service_call(service: AuthGateService, method: Callable[..., Any], *args: Any) -> Any:
    """Invoke a service method, re-raising service errors as API errors."""

    try:
        return method(*args)
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc


# ----------------------------- Auth -------------------------------------------


def _bearer_token() -> str:
    """Return the credentials of an ``Authorization: Bearer <token>`` header.

    The scheme name is matched case-insensitively.

    :raises Unauthorized: If the header is absent, uses another scheme or
        carries no token.
    """
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != BEARER_SCHEME or not token:
        raise Unauthorized("Missing bearer access token")
    return token


def reset_identity() -> None:
    """Forget the caller identity of a previous request sharing this app context."""

    for key in ("jwt_claims", "user_id", "user_role"):
        g.pop(key, None)


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token.

    On success the verified claims are exposed as ``g.jwt_claims`` and the
    caller identity as ``g.user_id`` / ``g.user_role``.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = _bearer_token()
        try:
            claims = get_codec().decode(token)
            user_id = int(claims["sub"])
        except InvalidAccessToken as exc:
            raise Unauthorized(str(exc)) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise Unauthorized("Invalid access token") from exc
        g.jwt_claims = claims
        g.user_id = user_id
        g.user_role = claims.get("role")
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def require_role(required: str) -> Callable[[F], F]:
    """Ensure the verified access token carries the ``required`` role claim."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        @require_auth
        def wrapper(*args: Any, **kwargs: Any):
            if g.user_role != required:
                raise Forbidden(f"{required} role required")
            return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
