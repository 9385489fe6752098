"""
Abstract Unit of Work contract shared by the token services.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authgate.repositories import RefreshTokenRepository, UserRepository


class UnitOfWork(ABC):
    """
    Transactional boundary around one token operation.

    Both repositories share a single transaction. A clean exit commits; any
    exception, including one raised by the commit itself, rolls back and
    propagates to the caller.

    Attributes
    ----------
    users : UserRepository
        Credential lookups and the owner row lock.
    refresh_tokens : RefreshTokenRepository
        Refresh token reads, compare-and-set revocations and sweeps.
    """

    users: UserRepository
    refresh_tokens: RefreshTokenRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except BaseException:
            self.rollback()
            raise

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
