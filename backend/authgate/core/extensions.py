"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData, event
from sqlalchemy.engine import Engine

from authgate.core.config import store_engine_options

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
limiter = Limiter(key_func=get_remote_address)

# Connection execution option selecting the SQLite ``BEGIN`` flavour.
SQLITE_BEGIN_OPTION = "sqlite_begin"
_BEGIN_MODES = frozenset({"DEFERRED", "IMMEDIATE", "EXCLUSIVE"})


def install_sqlite_pragmas(engine: Engine) -> None:
    """Make SQLite honour foreign keys and SAVEPOINT-based transactions.

    Parameters
    ----------
    engine: sqlalchemy.engine.Engine
        SQLite engine to instrument.

    Notes
    -----
    pysqlite delays ``BEGIN`` until the first DML statement, which breaks
    nested transactions. Autocommit is disabled at the driver level and
    SQLAlchemy emits ``BEGIN`` itself: plain ``BEGIN`` by default, or
    ``BEGIN IMMEDIATE`` when the connection carries
    ``SQLITE_BEGIN_OPTION="IMMEDIATE"`` (set by writer units of work).
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # pragma: no cover - driver glue
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        mode = str(conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "")).upper()
        conn.exec_driver_sql(f"BEGIN {mode}" if mode in _BEGIN_MODES else "BEGIN")


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations and rate limiting.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`authgate.models` package to ensure SQLAlchemy metadata is ready
        for migrations.
    """
    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        store_engine_options(
            str(app.config["SQLALCHEMY_DATABASE_URI"]),
            int(app.config.get("STORE_TIMEOUT_SECONDS", 5)),
        ),
    )

    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from authgate import models as _models  # noqa: F401

    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            install_sqlite_pragmas(db.engine)

    migrate.init_app(app, db)
    limiter.init_app(app)
