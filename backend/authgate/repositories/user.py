"""User repository for identity lookups."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from authgate.models.user import User
from authgate.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It never verifies passwords or issues tokens; the auth service does.
    """

    model = User

    def _sortable_fields(self):
        """Expose sortable fields for safe public sorting."""
        return {
            "id": User.id,
            "username": User.username,
            "created_at": User.created_at,
        }

    def _filterable_fields(self):
        """Whitelist fields safe for equality filters."""
        return {
            "username": User.username,
            "role": User.role,
        }

    def find_by_username(self, username: str) -> User | None:
        """Fetch a user by exact (trimmed) username.

        :param username: Login handle.
        :type username: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        stmt = select(User).where(User.username == username.strip())
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    def exists_by_username(self, username: str) -> bool:
        """Return ``True`` when the username is already taken."""
        stmt = select(User.id).where(User.username == username.strip())
        return self.session.execute(stmt).first() is not None

    def get_for_update(self, user_id: int) -> User | None:
        """Load a user and lock its row until the transaction ends.

        Serializes concurrent session issuance for the same user on backends
        that support ``SELECT ... FOR UPDATE``; elsewhere it is a plain read.

        :param user_id: Primary key.
        :type user_id: int
        :returns: Locked user or ``None``.
        :rtype: User | None
        """
        stmt = select(User).where(User.id == user_id).with_for_update()
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)
