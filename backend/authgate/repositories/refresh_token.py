"""Refresh token repository: lookups, compare-and-set revocation and sweeps."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import cast

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import joinedload

from authgate.models.refresh_token import RefreshToken
from authgate.repositories.base import BaseRepository


def _retired(now: datetime, created_before: datetime):
    """Predicate for rows that may be purged: retired and past retention."""
    return (
        or_(RefreshToken.expires_at <= now, RefreshToken.revoked.is_(True))
        & (RefreshToken.created_at < created_before)
    )


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    Token values are only ever used as lookup keys here; callers decide what
    may be logged.
    """

    model = RefreshToken

    def _sortable_fields(self):
        return {
            "id": RefreshToken.id,
            "created_at": RefreshToken.created_at,
            "expires_at": RefreshToken.expires_at,
        }

    def _filterable_fields(self):
        return {
            "token": RefreshToken.token,
            "user_id": RefreshToken.user_id,
            "revoked": RefreshToken.revoked,
        }

    # ---------------------------- Lookups ----------------------------

    def find_by_token(
        self, token: str, *, with_user: bool = False, for_update: bool = False
    ) -> RefreshToken | None:
        """Exact-match lookup by token value.

        :param token: Opaque token value.
        :type token: str
        :param with_user: Eager-load the owning :class:`User`.
        :type with_user: bool
        :param for_update: Lock the row (``SELECT ... FOR UPDATE`` where the
            dialect supports it) and overwrite identity-map state from the row.
        :type for_update: bool
        :returns: Matching row or ``None``.
        :rtype: RefreshToken | None
        """
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        if with_user:
            stmt = stmt.options(joinedload(RefreshToken.user, innerjoin=True))
        if for_update:
            stmt = stmt.with_for_update(of=RefreshToken).execution_options(
                populate_existing=True
            )
        result = self.session.execute(stmt).scalars().first()
        return cast(RefreshToken | None, result)

    def find_for_user(self, user_id: int, token: str) -> RefreshToken | None:
        """Lookup scoped to an owner; another user's token is treated as absent."""
        stmt = select(RefreshToken).where(
            RefreshToken.token == token,
            RefreshToken.user_id == user_id,
        )
        result = self.session.execute(stmt).scalars().first()
        return cast(RefreshToken | None, result)

    def find_active(self, user_id: int, now: datetime) -> list[RefreshToken]:
        """Return non-revoked, unexpired tokens of ``user_id`` (oldest first).

        :param user_id: Owner id.
        :type user_id: int
        :param now: Reference time (aware UTC).
        :type now: datetime
        :returns: Active tokens.
        :rtype: list[RefreshToken]
        """
        stmt = (
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def token_exists(self, token: str) -> bool:
        return self.exists(token=token)

    # ---------------------------- Writes ----------------------------

    def _expire_loaded(self, match: Callable[[RefreshToken], bool]) -> None:
        """Expire revocation state of identity-mapped rows touched by a bulk UPDATE."""
        for obj in list(self.session.identity_map.values()):
            if isinstance(obj, RefreshToken) and match(obj):
                self.session.expire(obj, ["revoked", "revoked_reason"])

    def revoke_if_active(self, token_id: int, reason: str) -> bool:
        """Flip ``revoked`` to true only if it is still false.

        The ``WHERE revoked = false`` guard makes this a compare-and-set: of
        two concurrent callers exactly one sees a changed row.

        :param token_id: Row id.
        :type token_id: int
        :param reason: Revocation reason to record.
        :type reason: str
        :returns: ``True`` if this call performed the revocation.
        :rtype: bool
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked.is_(False))
            .values(revoked=True, revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        changed = self.session.execute(stmt).rowcount == 1
        self._expire_loaded(lambda t: t.id == token_id)
        return changed

    def revoke_all_for_user(self, user_id: int, reason: str) -> int:
        """Revoke every non-revoked token of ``user_id``.

        :returns: Number of rows changed.
        :rtype: int
        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True, revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self._expire_loaded(lambda t: t.user_id == user_id)
        return int(result.rowcount or 0)

    # ---------------------------- Cleanup ----------------------------

    def find_cleanup_candidates(self, now: datetime, created_before: datetime) -> Sequence[int]:
        """Ids of revoked or expired rows created before ``created_before``."""
        stmt = select(RefreshToken.id).where(_retired(now, created_before))
        return list(self.session.execute(stmt).scalars().all())

    def delete_retired(self, ids: Sequence[int], now: datetime, created_before: datetime) -> int:
        """Delete ``ids`` while re-checking the retirement predicate.

        Rows that no longer match the predicate when the DELETE runs are left
        untouched.

        :returns: Number of rows deleted.
        :rtype: int
        """
        if not ids:
            return 0
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.id.in_(list(ids)), _retired(now, created_before))
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)
