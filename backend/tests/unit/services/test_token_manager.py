"""Unit tests for :class:`TokenLifecycleManager` against the transactional store."""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from authgate.models import RefreshToken
from authgate.repositories.refresh_token import RefreshTokenRepository
from authgate.repositories.user import UserRepository
from authgate.services._shared.errors import (
    ExpiredToken,
    InvalidToken,
    NotFoundError,
    RevokedToken,
    StoreUnavailable,
)
from authgate.services.tokens import (
    MAX_GENERATION_ATTEMPTS,
    REASON_EXPIRED,
    REASON_LOGOUT,
    REASON_MANUAL,
    REASON_ROTATED,
    REASON_SUPERSEDED,
    RefreshStatus,
    TokenLifecycleManager,
)
from authgate.uow import SQLAlchemyUnitOfWork
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from tests.factories.refresh_token import RefreshTokenFactory
from tests.factories.user import UserFactory
from tests.helpers.clock import T0


def _row(session, token: str) -> RefreshToken:
    session.expire_all()
    return session.execute(select(RefreshToken).where(RefreshToken.token == token)).scalar_one()


def _active_values(session, user_id: int, now) -> list[str]:
    return [t.token for t in RefreshTokenRepository(session=session).find_active(user_id, now)]


class ConstantGenerator:
    """Generator double that always returns the same value."""

    def generate(self) -> str:
        return "constant-value"


@pytest.fixture()
def lock_log(monkeypatch):
    """Record the order in which owner rows and token rows get locked or written."""
    calls: list[str] = []
    get_for_update = UserRepository.get_for_update
    find_by_token = RefreshTokenRepository.find_by_token
    revoke_if_active = RefreshTokenRepository.revoke_if_active
    revoke_all = RefreshTokenRepository.revoke_all_for_user

    def user_lock(self, user_id):
        calls.append("user")
        return get_for_update(self, user_id)

    def token_lookup(self, token, **kwargs):
        if kwargs.get("for_update"):
            calls.append("token")
        return find_by_token(self, token, **kwargs)

    def token_write(self, token_id, reason):
        calls.append("token")
        return revoke_if_active(self, token_id, reason)

    def tokens_write(self, user_id, reason):
        calls.append("token")
        return revoke_all(self, user_id, reason)

    monkeypatch.setattr(UserRepository, "get_for_update", user_lock)
    monkeypatch.setattr(RefreshTokenRepository, "find_by_token", token_lookup)
    monkeypatch.setattr(RefreshTokenRepository, "revoke_if_active", token_write)
    monkeypatch.setattr(RefreshTokenRepository, "revoke_all_for_user", tokens_write)
    return calls


# ------------------------------------------------------------------------- #
# issue_session
# ------------------------------------------------------------------------- #


class TestIssueSession:
    def test_persists_new_active_token(self, manager, session):
        """
        GIVEN a user without tokens
        WHEN a session is issued
        THEN one active 88-char token expiring in 30 days is stored.
        """
        user = UserFactory()

        out = manager.issue_session(user.id)

        assert len(out.refresh_token) == 88
        assert out.refresh_expires_at == T0 + timedelta(days=30)
        row = _row(session, out.refresh_token)
        assert row.id == out.token_id
        assert row.user_id == user.id
        assert row.created_at == T0
        assert row.revoked is False

    def test_second_issue_supersedes_first(self, manager, session):
        """
        GIVEN a user with an active token
        WHEN a second session is issued
        THEN only the second token is active and the first records the reason.
        """
        user = UserFactory()

        first = manager.issue_session(user.id)
        second = manager.issue_session(user.id)

        assert _active_values(session, user.id, T0) == [second.refresh_token]
        old = _row(session, first.refresh_token)
        assert old.revoked is True
        assert old.revoked_reason == REASON_SUPERSEDED

    def test_already_revoked_tokens_keep_their_reason(self, manager, session):
        user = UserFactory()
        RefreshTokenFactory(user=user, token="old", revoked=True, revoked_reason=REASON_MANUAL)

        manager.issue_session(user.id)

        assert _row(session, "old").revoked_reason == REASON_MANUAL

    def test_unknown_user(self, manager):
        with pytest.raises(NotFoundError):
            manager.issue_session(424242)

    def test_generation_exhaustion_rolls_back(self, settings, codec, clock, session):
        """
        GIVEN a generator that only ever yields one value
        WHEN a second session is issued
        THEN issuance gives up after bounded attempts and nothing is superseded.
        """
        user = UserFactory()
        manager = TokenLifecycleManager(
            settings=settings,
            codec=codec,
            generator=ConstantGenerator(),
            uow_factory=SQLAlchemyUnitOfWork,
            clock=clock,
        )
        manager.issue_session(user.id)

        with pytest.raises(RuntimeError, match=f"{MAX_GENERATION_ATTEMPTS} attempts"):
            manager.issue_session(user.id)

        assert _active_values(session, user.id, T0) == ["constant-value"]

    def test_store_failure_surfaces_as_unavailable(self, manager, monkeypatch):
        user = UserFactory()

        def boom(self, user_id):
            raise OperationalError("SELECT", {}, Exception("lock timeout"))

        monkeypatch.setattr(UserRepository, "get_for_update", boom)

        with pytest.raises(StoreUnavailable):
            manager.issue_session(user.id)


# ------------------------------------------------------------------------- #
# refresh
# ------------------------------------------------------------------------- #


class TestRefresh:
    def test_rotation_succeeds_once(self, manager, codec, session):
        """
        GIVEN a freshly issued refresh token
        WHEN it is exchanged
        THEN a new pair is returned and the input is retired as "rotated".
        """
        user = UserFactory(username="alice")
        r1 = manager.issue_session(user.id)

        result = manager.refresh(r1.refresh_token)

        assert result.status is RefreshStatus.OK
        assert result.ok is True
        assert result.user_id == user.id
        assert result.session.refresh_token != r1.refresh_token
        assert result.access.expires_at == T0 + timedelta(minutes=15)
        assert codec.decode(result.access.token)["username"] == "alice"

        old = _row(session, r1.refresh_token)
        assert old.revoked is True
        assert old.revoked_reason == REASON_ROTATED
        assert _active_values(session, user.id, T0) == [result.session.refresh_token]

    def test_second_exchange_is_reuse(self, manager, session):
        """
        GIVEN a token that was already exchanged
        WHEN it is presented again
        THEN the result is REVOKED and every token of the user is revoked.
        """
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        r2 = manager.refresh(r1.refresh_token).session

        replay = manager.refresh(r1.refresh_token)

        assert replay.status is RefreshStatus.REVOKED
        assert replay.access is None and replay.session is None
        with pytest.raises(RevokedToken, match="log in again"):
            replay.raise_for_status()
        assert _active_values(session, user.id, T0) == []
        assert _row(session, r2.refresh_token).revoked_reason == REASON_LOGOUT
        assert _row(session, r1.refresh_token).revoked_reason == REASON_ROTATED

    def test_admin_rotation_chain(self, manager):
        """
        GIVEN admin logs in with R1
        WHEN R1 -> R2 -> R3 are rotated in order
        THEN every step succeeds and each value is new.
        """
        admin = UserFactory(username="admin", admin=True)
        r1 = manager.issue_session(admin.id)

        r2 = manager.refresh(r1.refresh_token).raise_for_status().session
        r3 = manager.refresh(r2.refresh_token).raise_for_status().session

        assert len({r1.refresh_token, r2.refresh_token, r3.refresh_token}) == 3

    def test_replay_after_rotation_blocks_successor(self, manager):
        """
        GIVEN R1 rotated into R2
        WHEN R1 is replayed
        THEN the replay fails and R2 is no longer usable either.
        """
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        r2 = manager.refresh(r1.refresh_token).session

        assert manager.refresh(r1.refresh_token).status is RefreshStatus.REVOKED
        assert manager.refresh(r2.refresh_token).status is RefreshStatus.REVOKED

    def test_unknown_token(self, manager):
        result = manager.refresh("does-not-exist")

        assert result.status is RefreshStatus.INVALID
        assert result.user_id is None
        with pytest.raises(InvalidToken):
            result.raise_for_status()

    def test_expired_token(self, manager, clock, session):
        """
        GIVEN a token whose expiry has been reached
        WHEN it is exchanged
        THEN the result is EXPIRED and the row is revoked with reason "expired".
        """
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        clock.advance(days=30)

        result = manager.refresh(r1.refresh_token)

        assert result.status is RefreshStatus.EXPIRED
        with pytest.raises(ExpiredToken):
            result.raise_for_status()
        row = _row(session, r1.refresh_token)
        assert row.revoked is True
        assert row.revoked_reason == REASON_EXPIRED

    def test_one_second_before_expiry_still_rotates(self, manager, clock):
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        clock.advance(days=30, seconds=-1)

        assert manager.refresh(r1.refresh_token).status is RefreshStatus.OK

    def test_lost_compare_and_set_is_reuse(self, manager, session, monkeypatch):
        """
        GIVEN a concurrent request claims the token between lookup and update
        WHEN this request's compare-and-set changes no row
        THEN it reports REVOKED and does not mint a second pair.
        """
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        original = RefreshTokenRepository.revoke_if_active

        def racing(self, token_id, reason):
            if reason == REASON_ROTATED:
                original(self, token_id, REASON_ROTATED)
            return original(self, token_id, reason)

        monkeypatch.setattr(RefreshTokenRepository, "revoke_if_active", racing)

        result = manager.refresh(r1.refresh_token)

        assert result.status is RefreshStatus.REVOKED
        assert result.session is None
        assert session.query(RefreshToken).filter_by(user_id=user.id).count() == 1
        assert _active_values(session, user.id, T0) == []

    def test_logs_rotation_without_token_values(self, manager, caplog):
        caplog.set_level(logging.INFO, logger="authgate.services.tokens.manager")
        user = UserFactory()
        r1 = manager.issue_session(user.id)

        result = manager.refresh(r1.refresh_token)

        rotated = [r for r in caplog.records if r.getMessage() == "token.rotated"]
        assert len(rotated) == 1
        assert rotated[0].user_id == user.id
        assert rotated[0].new_token_id == result.session.token_id
        for record in caplog.records:
            rendered = f"{record.getMessage()} {record.__dict__}"
            assert r1.refresh_token not in rendered
            assert result.session.refresh_token not in rendered

    def test_logs_reuse_as_warning(self, manager, caplog):
        caplog.set_level(logging.INFO, logger="authgate.services.tokens.manager")
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        manager.refresh(r1.refresh_token)

        manager.refresh(r1.refresh_token)

        reuse = [r for r in caplog.records if r.getMessage() == "token.reuse_detected"]
        assert len(reuse) == 1
        assert reuse[0].levelno == logging.WARNING
        assert reuse[0].user_id == user.id

    def test_locks_owner_before_presented_token(self, manager, lock_log):
        """
        GIVEN an active token
        WHEN it is exchanged
        THEN the owner row is locked before any token row is locked or
            written, matching the order issuance uses.
        """
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        assert lock_log[0] == "user"
        lock_log.clear()

        assert manager.refresh(r1.refresh_token).status is RefreshStatus.OK

        assert lock_log[0] == "user"
        assert "token" in lock_log
        assert lock_log.index("user") < lock_log.index("token")

    def test_reuse_locks_owner_before_cascade(self, manager, lock_log):
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        manager.refresh(r1.refresh_token)
        lock_log.clear()

        assert manager.refresh(r1.refresh_token).status is RefreshStatus.REVOKED
        assert lock_log[0] == "user"


# ------------------------------------------------------------------------- #
# revoke
# ------------------------------------------------------------------------- #


class TestRevoke:
    def test_revoke_all_without_tokens_is_success(self, manager):
        user = UserFactory()
        assert manager.revoke(user.id) is True

    def test_revoke_unknown_token(self, manager):
        user = UserFactory()
        assert manager.revoke(user.id, "bogus") is False

    def test_revoke_specific_token(self, manager, session):
        user = UserFactory()
        r1 = manager.issue_session(user.id)

        assert manager.revoke(user.id, r1.refresh_token) is True

        row = _row(session, r1.refresh_token)
        assert row.revoked is True
        assert row.revoked_reason == REASON_MANUAL

    def test_revoking_twice_keeps_first_reason(self, manager, session):
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        manager.refresh(r1.refresh_token)

        assert manager.revoke(user.id, r1.refresh_token) is True
        assert _row(session, r1.refresh_token).revoked_reason == REASON_ROTATED

    def test_cannot_revoke_someone_elses_token(self, manager, session):
        """
        GIVEN Bob's active token
        WHEN Alice tries to revoke it
        THEN the call reports not found and Bob's token stays active.
        """
        alice, bob = UserFactory(), UserFactory()
        bobs = manager.issue_session(bob.id)

        assert manager.revoke(alice.id, bobs.refresh_token) is False
        assert _active_values(session, bob.id, T0) == [bobs.refresh_token]

    def test_revoke_all(self, manager, session):
        user = UserFactory()
        RefreshTokenFactory(user=user)
        RefreshTokenFactory(user=user)

        assert manager.revoke(user.id) is True
        assert _active_values(session, user.id, T0) == []
        reasons = {
            t.revoked_reason for t in session.query(RefreshToken).filter_by(user_id=user.id)
        }
        assert reasons == {REASON_LOGOUT}

    @pytest.mark.parametrize("specific", [True, False])
    def test_locks_owner_first(self, manager, lock_log, specific):
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        lock_log.clear()

        manager.revoke(user.id, r1.refresh_token if specific else None)

        assert lock_log == ["user", "token"]


# ------------------------------------------------------------------------- #
# cleanup / listing
# ------------------------------------------------------------------------- #


class TestCleanup:
    def test_never_removes_active_tokens(self, manager, session):
        """
        GIVEN an active token created a year ago and retired tokens of all ages
        WHEN the sweep runs at T0
        THEN only retired tokens older than the retention window are deleted.
        """
        year_ago = T0 - timedelta(days=365)
        ancient_active = RefreshTokenFactory(created_at=year_ago, lifetime=timedelta(days=400))
        RefreshTokenFactory(created_at=year_ago, revoked=True, revoked_reason=REASON_ROTATED)
        RefreshTokenFactory(created_at=year_ago)  # expired long ago
        fresh_revoked = RefreshTokenFactory(revoked=True, revoked_reason=REASON_MANUAL)

        assert manager.cleanup_expired() == 2

        session.expire_all()
        remaining = {t.id for t in session.query(RefreshToken)}
        assert remaining == {ancient_active.id, fresh_revoked.id}

    def test_idempotent(self, manager):
        RefreshTokenFactory(created_at=T0 - timedelta(days=90))

        assert manager.cleanup_expired() == 1
        assert manager.cleanup_expired() == 0

    def test_retention_counts_from_creation(self, manager, clock):
        user = UserFactory()
        r1 = manager.issue_session(user.id)
        manager.refresh(r1.refresh_token)

        clock.advance(days=30)
        assert manager.cleanup_expired() == 0

        clock.advance(seconds=1)
        assert manager.cleanup_expired() == 2


class TestListActive:
    def test_views_hide_token_values(self, manager):
        user = UserFactory()
        out = manager.issue_session(user.id)

        views = manager.list_active(user.id)

        assert [v.id for v in views] == [out.token_id]
        assert views[0].expires_at == T0 + timedelta(days=30)
        assert not hasattr(views[0], "token")
