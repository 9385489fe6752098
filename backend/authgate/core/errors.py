"""Problem Details (RFC 7807) responses for every error leaving the API.

Each body carries ``type``, ``title``, ``status``, ``detail``, ``instance``,
a stable snake_case ``code`` and the ``request_id`` that also tags the log
records of the request. Store and internal failures are reported with a fixed
message; driver errors and token values never reach the client.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from werkzeug.exceptions import HTTPException

from authgate.core.logger import ensure_request_id

log = logging.getLogger(__name__)

_STATUS_CODES: dict[int, str] = {
    HTTPStatus.BAD_REQUEST: "bad_request",
    HTTPStatus.UNAUTHORIZED: "unauthorized",
    HTTPStatus.FORBIDDEN: "forbidden",
    HTTPStatus.NOT_FOUND: "not_found",
    HTTPStatus.METHOD_NOT_ALLOWED: "method_not_allowed",
    HTTPStatus.CONFLICT: "conflict",
    HTTPStatus.UNSUPPORTED_MEDIA_TYPE: "unsupported_media_type",
    HTTPStatus.UNPROCESSABLE_ENTITY: "unprocessable_entity",
    HTTPStatus.TOO_MANY_REQUESTS: "too_many_requests",
    HTTPStatus.INTERNAL_SERVER_ERROR: "internal_server_error",
    HTTPStatus.SERVICE_UNAVAILABLE: "service_unavailable",
}


def problem(
    status: int,
    code: str,
    detail: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build a Problem Details body for the current request.

    :param status: HTTP status code.
    :param code: Stable machine-readable error code.
    :param detail: Client-safe message.
    :param details: Optional structured extras such as field errors.
    :returns: Problem+JSON dictionary.
    """
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": int(status),
        "detail": detail,
        "instance": request.path if request else None,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        body["details"] = details
    return body


def _respond(body: dict[str, Any], *, exc_info: bool = False) -> tuple[Response, int]:
    status = body["status"]
    level = logging.ERROR if status >= 500 else logging.WARNING
    log.log(
        level,
        "request failed: code=%s status=%s detail=%s",
        body["code"],
        status,
        body["detail"],
        exc_info=exc_info,
    )
    resp = jsonify(body)
    resp.mimetype = "application/problem+json"
    return resp, status


class APIError(Exception):
    """
    Error raised by views and services to produce a problem response.

    Parameters
    ----------
    message : str
        Client-safe description, rendered as ``detail``.
    status_code : int, optional
        HTTP status. Defaults to ``400``.
    code : str, optional
        Machine-readable identifier. Defaults to ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Structured extras rendered as ``details``.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        return problem(self.status_code, self.code, self.message, self.details or None)


class NotFound(APIError):
    """404, including tokens that do not belong to the caller."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND, code="not_found")


class Conflict(APIError):
    """409 for a username that is already taken."""

    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(message, status_code=HTTPStatus.CONFLICT, code="conflict")


class Unauthorized(APIError):
    """401 for bad credentials and unusable access or refresh tokens."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code="unauthorized")


class Forbidden(APIError):
    """403 when the caller's role is insufficient."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, status_code=HTTPStatus.FORBIDDEN, code="forbidden")


class ServiceUnavailable(APIError):
    """503 when the credential store cannot be reached in time."""

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(
            message, status_code=HTTPStatus.SERVICE_UNAVAILABLE, code="service_unavailable"
        )


def init_app(app: Flask) -> None:
    """Register the problem handlers on ``app``."""

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        return _respond(err.to_problem())

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        code = _STATUS_CODES.get(status, "error")
        if status == HTTPStatus.NOT_FOUND:
            detail = f"Route '{request.path}' not found"
        else:
            detail = (err.description or code.replace("_", " ").capitalize()).strip()
        return _respond(problem(status, code, detail))

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        body = problem(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            "validation_error",
            "Validation failed",
            {"errors": err.messages},
        )
        return _respond(body)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        return _respond(
            problem(HTTPStatus.CONFLICT, "conflict", "Resource conflict"), exc_info=True
        )

    @app.errorhandler(OperationalError)
    @app.errorhandler(PoolTimeoutError)
    def handle_store_error(err: Exception):
        return _respond(ServiceUnavailable().to_problem(), exc_info=True)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        body = problem(HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error")
        return _respond(body, exc_info=True)
