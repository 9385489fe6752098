# authgate/services/_shared/base.py
from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from authgate.core import errors as api_errors
from authgate.services._shared.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidAccessToken,
    NotFoundError,
    ServiceError,
    StoreUnavailable,
    TokenError,
)
from authgate.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)

F = TypeVar("F", bound=Callable[..., Any])


@contextmanager
def store_guard() -> Iterator[None]:
    """
    Translate store connectivity and timeout failures into :class:`StoreUnavailable`.

    :raises StoreUnavailable: When SQLAlchemy reports an operational error
        (unreachable database, lock or statement timeout) or pool exhaustion.
    """
    try:
        yield
    except (OperationalError, PoolTimeoutError) as exc:
        raise StoreUnavailable() from exc


def guarded(func: F) -> F:
    """Decorator form of :func:`store_guard`."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        with store_guard():
            return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data (auth, request ids, etc.).

    :param actor_id: Authenticated user identifier.
    :param actor_role: Role claim of the authenticated user.
    :param request_id: Correlation id for logging/tracing.
    """

    actor_id: int | None = None
    actor_role: str | None = None
    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Centralize error translation.
    * Keep services thin, orchestration-only, no web/ORM leakage.

    Notes
    -----
    - Services must never touch the global session; always use a Unit of Work.
    """

    # ---- Configuration defaults (override per subclass if needed) ----
    DEFAULT_READ_ISOLATION = "READ COMMITTED"  # or "REPEATABLE READ"

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        """
        Initialize the base service.

        :param ctx: Optional request-scoped context (auth, tracing).
        :type ctx: ServiceContext | None
        """
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :returns: Read-write UoW instance.
        :rtype: SQLAlchemyUnitOfWork
        """
        return SQLAlchemyUnitOfWork()

    def ro_uow(
        self, *, isolation: str | None = None, enforce_db_readonly: bool = True
    ) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :param isolation: Transaction isolation level (e.g. "READ COMMITTED").
        :type isolation: str | None
        :param enforce_db_readonly: Apply `SET TRANSACTION READ ONLY` when supported.
        :type enforce_db_readonly: bool
        :returns: Read-only UoW instance.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=isolation or self.DEFAULT_READ_ISOLATION,
            enforce_db_readonly=enforce_db_readonly,
        )

    # --------------------------- AuthZ --------------------------------------

    def ensure_role(self, required: str, *, msg: str | None = None) -> None:
        """
        Ensure the current actor carries ``required`` role.

        :param required: Role tag (e.g. ``"Admin"``).
        :type required: str
        :param msg: Optional custom error message.
        :type msg: str | None
        :raises AuthorizationError: If the actor role differs.
        """
        if self.ctx.actor_role != required:
            raise AuthorizationError(msg or f"{required} role required.")

    # -------------------------- Error handling ------------------------------

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, NotFoundError):
            # → 404 Not Found
            return api_errors.NotFound(str(exc))

        if isinstance(exc, ConflictError):
            # → 409 Conflict
            return api_errors.Conflict(str(exc))

        if isinstance(exc, AuthenticationError | TokenError | InvalidAccessToken):
            # → 401 Unauthorized
            return api_errors.Unauthorized(str(exc))

        if isinstance(exc, AuthorizationError):
            # → 403 Forbidden
            return api_errors.Forbidden(str(exc))

        if isinstance(exc, StoreUnavailable):
            # → 503 Service Unavailable
            return api_errors.ServiceUnavailable()

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
