"""Unit of Work contract and its SQLAlchemy implementations.

Services open one unit of work per token operation; the read-write variant
commits on success while the read-only one always rolls back.
"""

from .base import UnitOfWork
from .sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

__all__ = [
    "UnitOfWork",
    "SQLAlchemyUnitOfWork",
    "SQLAlchemyReadOnlyUnitOfWork",
]
