# authgate/services/tokens/manager.py
"""
Token lifecycle engine.

Issues, rotates, revokes and purges refresh tokens, and mints access tokens
for successful rotations. Every public operation runs inside exactly one unit
of work; outcomes are logged after the transaction has committed.
"""

from __future__ import annotations

import logging
from datetime import datetime

from authgate.core.token_settings import TokenSettings
from authgate.models import RefreshToken
from authgate.services._shared.base import store_guard
from authgate.services._shared.errors import NotFoundError
from authgate.services._shared.ports import (
    AccessTokenCodec,
    Clock,
    RefreshTokenGenerator,
    TokenUnitOfWork,
    UnitOfWorkFactory,
    system_clock,
)
from authgate.services.tokens.dto import (
    REASON_EXPIRED,
    REASON_LOGOUT,
    REASON_MANUAL,
    REASON_ROTATED,
    REASON_SUPERSEDED,
    RefreshResult,
    RefreshStatus,
    SessionOut,
    TokenView,
)

log = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 5


class TokenLifecycleManager:
    """
    Issue, rotate, revoke and clean up refresh tokens.

    Parameters
    ----------
    settings : TokenSettings
        Lifetimes and retention window.
    codec : AccessTokenCodec
        Mints access tokens for rotated sessions.
    generator : RefreshTokenGenerator
        Source of opaque refresh token values.
    uow_factory : UnitOfWorkFactory
        Zero-argument callable returning a read-write unit of work.
    clock : Clock, optional
        Returns the current aware UTC time. Defaults to the wall clock.

    Notes
    -----
    - A user has at most one active refresh token: issuing a new one
      supersedes the others inside the same transaction, and the owner row is
      locked first where the backend supports row locks.
    - Writers lock the owner row before any of its token rows, so issuance,
      rotation and revocation for the same user queue instead of deadlocking.
    - Presenting a revoked token is treated as theft and terminates every
      session of its owner.
    - Store failures surface as :class:`StoreUnavailable` and are never
      retried here.
    """

    def __init__(
        self,
        *,
        settings: TokenSettings,
        codec: AccessTokenCodec,
        generator: RefreshTokenGenerator,
        uow_factory: UnitOfWorkFactory,
        clock: Clock = system_clock,
    ) -> None:
        self.settings = settings
        self.codec = codec
        self.generator = generator
        self.uow_factory = uow_factory
        self.clock = clock

    # ------------------------------------------------------------------ #
    # Issuance
    # ------------------------------------------------------------------ #

    def issue_session(self, user_id: int) -> SessionOut:
        """
        Create a fresh refresh token for ``user_id``.

        Every currently active token of the user is revoked with reason
        ``superseded by new issuance`` in the same transaction.

        :param user_id: Owner id.
        :type user_id: int
        :returns: The new token and its expiry.
        :rtype: SessionOut
        :raises NotFoundError: If the user does not exist.
        :raises StoreUnavailable: If the store cannot be reached in time.
        """
        with store_guard(), self.uow_factory() as uow:
            now = self.clock()
            session, superseded = self._issue_session(uow, user_id, now)

        log.info(
            "token.issued",
            extra={
                "event": "token.issued",
                "user_id": user_id,
                "token_id": session.token_id,
                "superseded": superseded,
            },
        )
        return session

    def _issue_session(
        self, uow: TokenUnitOfWork, user_id: int, now: datetime, *, owner_locked: bool = False
    ) -> tuple[SessionOut, int]:
        if not owner_locked and uow.users.get_for_update(user_id) is None:
            raise NotFoundError("User", user_id)

        superseded = 0
        for active in uow.refresh_tokens.find_active(user_id, now):
            if uow.refresh_tokens.revoke_if_active(active.id, REASON_SUPERSEDED):
                superseded += 1

        row = RefreshToken(
            token=self._unique_token(uow),
            user_id=user_id,
            expires_at=now + self.settings.refresh_ttl,
            created_at=now,
        )
        uow.refresh_tokens.add(row)
        out = SessionOut(
            refresh_token=row.token,
            refresh_expires_at=row.expires_at,
            token_id=row.id,
        )
        return out, superseded

    def _unique_token(self, uow: TokenUnitOfWork) -> str:
        for _ in range(MAX_GENERATION_ATTEMPTS):
            candidate = self.generator.generate()
            if not uow.refresh_tokens.token_exists(candidate):
                return candidate
        raise RuntimeError(
            f"Could not generate an unused refresh token in {MAX_GENERATION_ATTEMPTS} attempts."
        )

    # ------------------------------------------------------------------ #
    # Rotation
    # ------------------------------------------------------------------ #

    def refresh(self, token: str) -> RefreshResult:
        """
        Exchange ``token`` for a new access token and refresh token.

        The owner is resolved with a plain read and locked; only then is the
        presented token locked, re-read from the store and claimed with a
        compare-and-set, so it can be exchanged at most once.

        :param token: Refresh token presented by the client.
        :type token: str
        :returns: ``OK`` with both tokens, or ``INVALID``/``REVOKED``/``EXPIRED``.
            Non-OK results are committed too (revocations persist); call
            :meth:`RefreshResult.raise_for_status` to get exceptions instead.
        :rtype: RefreshResult
        :raises StoreUnavailable: If the store cannot be reached in time.
        """
        with store_guard(), self.uow_factory() as uow:
            now = self.clock()
            row = uow.refresh_tokens.find_by_token(token)
            if row is not None:
                uow.users.get_for_update(row.user_id)
                row = uow.refresh_tokens.find_by_token(token, with_user=True, for_update=True)

            if row is None:
                result = RefreshResult(status=RefreshStatus.INVALID)
                event = None
            elif row.revoked:
                result, event = self._terminate_sessions(uow, row), "token.reuse_detected"
            elif row.is_expired(now):
                uow.refresh_tokens.revoke_if_active(row.id, REASON_EXPIRED)
                result = RefreshResult(status=RefreshStatus.EXPIRED, user_id=row.user_id)
                event = "token.expired"
            elif not uow.refresh_tokens.revoke_if_active(row.id, REASON_ROTATED):
                # Lost the race against a concurrent exchange of the same token.
                result, event = self._terminate_sessions(uow, row), "token.reuse_detected"
            else:
                user = row.user
                access = self.codec.issue(user)
                session, _ = self._issue_session(uow, user.id, now, owner_locked=True)
                result = RefreshResult(
                    status=RefreshStatus.OK,
                    user_id=user.id,
                    access=access,
                    session=session,
                )
                event = "token.rotated"
            token_id = row.id if row is not None else None

        self._log_refresh(event, result, token_id)
        return result

    def _terminate_sessions(self, uow: TokenUnitOfWork, row: RefreshToken) -> RefreshResult:
        revoked = uow.refresh_tokens.revoke_all_for_user(row.user_id, REASON_LOGOUT)
        log.debug("Cascading revocation touched %s rows", revoked)
        return RefreshResult(status=RefreshStatus.REVOKED, user_id=row.user_id)

    def _log_refresh(self, event: str | None, result: RefreshResult, token_id: int | None) -> None:
        if event is None:
            log.info("token.refresh_rejected", extra={"event": "token.refresh_rejected"})
            return
        extra = {"event": event, "user_id": result.user_id, "token_id": token_id}
        if result.ok and result.session is not None:
            extra["new_token_id"] = result.session.token_id
            log.info(event, extra=extra)
        else:
            log.warning(event, extra=extra)

    # ------------------------------------------------------------------ #
    # Revocation
    # ------------------------------------------------------------------ #

    def revoke(self, user_id: int, token: str | None = None) -> bool:
        """
        Revoke one token of ``user_id`` or all of them.

        :param user_id: Owner id; a token belonging to someone else is
            treated as absent.
        :type user_id: int
        :param token: Specific token to revoke, or ``None`` for all tokens.
        :type token: str | None
        :returns: ``False`` only when a specific token was given and not found.
        :rtype: bool
        """
        with store_guard(), self.uow_factory() as uow:
            uow.users.get_for_update(user_id)
            if token is None:
                count = uow.refresh_tokens.revoke_all_for_user(user_id, REASON_LOGOUT)
                token_id = None
            else:
                row = uow.refresh_tokens.find_for_user(user_id, token)
                if row is None:
                    return False
                token_id = row.id
                count = int(uow.refresh_tokens.revoke_if_active(row.id, REASON_MANUAL))

        log.info(
            "token.revoked",
            extra={"event": "token.revoked", "user_id": user_id, "token_id": token_id, "count": count},
        )
        return True

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def cleanup_expired(self) -> int:
        """
        Hard-delete retired tokens older than the retention window.

        A row is retired when it is revoked or expired. Active rows are never
        deleted, however old.

        :returns: Number of deleted rows.
        :rtype: int
        """
        with store_guard(), self.uow_factory() as uow:
            now = self.clock()
            created_before = now - self.settings.retention
            ids = uow.refresh_tokens.find_cleanup_candidates(now, created_before)
            deleted = uow.refresh_tokens.delete_retired(ids, now, created_before)

        log.info("token.cleanup", extra={"event": "token.cleanup", "count": deleted})
        return deleted

    def list_active(self, user_id: int) -> list[TokenView]:
        """Active tokens of ``user_id``, oldest first, without their values."""
        with store_guard(), self.uow_factory() as uow:
            rows = uow.refresh_tokens.find_active(user_id, self.clock())
            return [
                TokenView(
                    id=r.id,
                    user_id=r.user_id,
                    created_at=r.created_at,
                    expires_at=r.expires_at,
                )
                for r in rows
            ]
