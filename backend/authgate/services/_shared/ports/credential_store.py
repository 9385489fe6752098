from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Protocol

from authgate.models import RefreshToken, User


class UserStore(Protocol):
    """Persistence contract for user identities."""

    def find_by_username(self, username: str) -> User | None: ...

    def get(self, entity_id: int) -> User | None: ...

    def get_for_update(self, user_id: int) -> User | None: ...

    def add(self, instance: User) -> User: ...

    def list(self) -> list[User]: ...


class RefreshTokenStore(Protocol):
    """
    Persistence contract for refresh tokens.

    Implementations never commit; the surrounding unit of work owns the
    transaction.
    """

    def find_by_token(
        self, token: str, *, with_user: bool = False, for_update: bool = False
    ) -> RefreshToken | None:
        """Exact-match lookup, optionally locking the row and eager-loading its owner."""
        ...

    def find_for_user(self, user_id: int, token: str) -> RefreshToken | None: ...

    def find_active(self, user_id: int, now: datetime) -> list[RefreshToken]: ...

    def token_exists(self, token: str) -> bool: ...

    def add(self, instance: RefreshToken) -> RefreshToken: ...

    def revoke_if_active(self, token_id: int, reason: str) -> bool:
        """Compare-and-set ``revoked`` from false to true. :returns: True if this call won."""
        ...

    def revoke_all_for_user(self, user_id: int, reason: str) -> int: ...

    def find_cleanup_candidates(self, now: datetime, created_before: datetime) -> Sequence[int]: ...

    def delete_retired(self, ids: Sequence[int], now: datetime, created_before: datetime) -> int: ...


class TokenUnitOfWork(Protocol):
    """Transactional scope exposing both stores over one connection."""

    users: UserStore
    refresh_tokens: RefreshTokenStore

    def __enter__(self) -> TokenUnitOfWork: ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


#: Zero-argument factory returning a fresh read-write unit of work.
UnitOfWorkFactory = Callable[[], TokenUnitOfWork]
