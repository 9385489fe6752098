"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

from contextlib import suppress

from flask import current_app
from sqlalchemy import event, text
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction, scoped_session

from authgate.core.extensions import SQLITE_BEGIN_OPTION, db
from authgate.repositories import RefreshTokenRepository, UserRepository
from authgate.uow.base import UnitOfWork

_ISOLATION_LEVELS = (
    "READ COMMITTED",
    "REPEATABLE READ",
    "SERIALIZABLE",
    "READ UNCOMMITTED",
)


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)
        self.refresh_tokens = RefreshTokenRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    Entering opens the transaction as a writer: on SQLite it starts with
    ``BEGIN IMMEDIATE``, so a competing writer waits for the busy timeout and
    then reads committed state instead of failing on lock upgrade. Commit and
    rollback semantics come from :class:`UnitOfWork`.
    """

    def __init__(self, session: Session | None = None) -> None:
        super().__init__(session=session if session is not None else db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        if not self.session.in_transaction():
            try:
                self.session.connection(execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"})
            except BaseException:
                self.rollback()
                raise
        return self

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped SQLAlchemy session.

    Parameters
    ----------
    isolation_level:
        Optional isolation level hint (``"READ COMMITTED"`` by default).
    enforce_db_readonly:
        Apply ``SET TRANSACTION READ ONLY`` where the dialect supports it.

    Notes
    -----
    ``SET TRANSACTION`` is only issued on PostgreSQL and MySQL/MariaDB and only
    when this scope owns the transaction. On every backend an ORM flush guard
    rejects pending writes and the scope always rolls back on exit.
    """

    _SET_TRANSACTION_DIALECTS = ("postgresql", "mysql", "mariadb")

    def __init__(
        self,
        *,
        isolation_level: str | None = "READ COMMITTED",
        enforce_db_readonly: bool = True,
        session: Session | None = None,
    ) -> None:
        super().__init__(session=session if session is not None else db.session)
        self.isolation_level = isolation_level
        self.enforce_db_readonly = enforce_db_readonly
        self._txn_ctx: SessionTransaction | None = None
        self._guard_installed = False

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        self._txn_ctx = None
        try:
            txn_ctx = self.session.begin()
            txn_ctx.__enter__()
            self._txn_ctx = txn_ctx
        except InvalidRequestError:
            # A transaction is already running (autobegin or an outer test
            # fixture); attach to it and rely on the flush guard alone.
            pass

        self._install_guard()
        if self._txn_ctx is not None:
            self._apply_transaction_directives()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._txn_ctx is not None:
                with suppress(SQLAlchemyError):
                    self.session.rollback()
                try:
                    self._txn_ctx.__exit__(exc_type, exc, tb)
                finally:
                    self._txn_ctx = None
        finally:
            self._remove_guard()

    def commit(self) -> None:
        """
        Disallow commit in read-only Unit of Work.

        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    # ----------------------------- Internals ----------------------------------

    def _apply_transaction_directives(self) -> None:
        dialect = self.session.get_bind().dialect.name
        if dialect not in self._SET_TRANSACTION_DIALECTS:
            return
        try:
            if self.isolation_level:
                iso = self.isolation_level.upper().strip()
                if iso not in _ISOLATION_LEVELS:
                    current_app.logger.warning("Unknown isolation_level '%s'; attempting as-is.", iso)
                self.session.execute(text(f"SET TRANSACTION ISOLATION LEVEL {iso}"))
            if self.enforce_db_readonly:
                self.session.execute(text("SET TRANSACTION READ ONLY"))
        except SQLAlchemyError as exc:
            current_app.logger.warning(
                "SET TRANSACTION directives failed (%s). Falling back to guards-only.", exc
            )

    def _before_flush(self, session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError(
                "Read-only UnitOfWork: ORM flush blocked (new/dirty/deleted objects present)."
            )

    def _guard_target(self) -> Session:
        # Listen on the concrete session, never on the scoped registry.
        session = self.session
        return session() if isinstance(session, scoped_session) else session

    def _install_guard(self) -> None:
        if self._guard_installed:
            return
        event.listen(self._guard_target(), "before_flush", self._before_flush)
        self._guard_installed = True

    def _remove_guard(self) -> None:
        if not self._guard_installed:
            return
        with suppress(InvalidRequestError):
            event.remove(self._guard_target(), "before_flush", self._before_flush)
        self._guard_installed = False
