# authgate/services/auth/service.py
"""
AuthGateService
===============

Front door of the token lifecycle: turns credentials and refresh tokens into
token pairs and exposes the small amount of identity data the API needs.
Token state changes are delegated to :class:`TokenLifecycleManager`.
"""

from __future__ import annotations

import functools
import logging
from typing import cast

from sqlalchemy.exc import IntegrityError

from authgate.core.token_settings import TokenSettings
from authgate.models import ROLE_ADMIN, ROLE_USER, User
from authgate.repositories.user import UserRepository
from authgate.services._shared.base import BaseService, ServiceContext, guarded
from authgate.services._shared.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    violates,
)
from authgate.services._shared.ports import (
    AccessTokenCodec,
    Clock,
    PasswordHasher,
    RefreshTokenGenerator,
    UnitOfWorkFactory,
    system_clock,
)
from authgate.services.auth.dto import (
    LoginIn,
    LoginOut,
    LogoutIn,
    RefreshIn,
    RegisterIn,
    TokenPairOut,
    UserOut,
)
from authgate.services.tokens.dto import AccessTokenOut, SessionOut
from authgate.services.tokens.manager import TokenLifecycleManager
from authgate.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)


@functools.lru_cache(maxsize=8)
def _timing_hash(hasher: PasswordHasher) -> str:
    """Hash verified against unknown usernames, computed once per hasher."""
    return hasher.hash("authgate-timing-equalizer")


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, username=user.username, role=user.role, created_at=user.created_at)


class AuthGateService(BaseService):
    """
    Authentication gate (register / login / refresh / logout / whoami).

    Responsibilities
    ----------------
    - Verify credentials without revealing which half of the pair failed.
    - Pair refresh tokens from the lifecycle manager with access tokens.
    - Scope revocations to the authenticated caller.
    """

    def __init__(
        self,
        *,
        manager: TokenLifecycleManager,
        codec: AccessTokenCodec,
        hasher: PasswordHasher,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the service with its collaborators.

        :param manager: Token lifecycle engine.
        :param codec: Access token codec (issue/decode).
        :param hasher: Password hashing primitive.
        :param ctx: Optional request-scoped context (actor, request id).
        """
        super().__init__(ctx=ctx)
        self.manager = manager
        self.codec = codec
        self.hasher = hasher

    @classmethod
    def build(
        cls,
        *,
        settings: TokenSettings,
        codec: AccessTokenCodec,
        hasher: PasswordHasher,
        generator: RefreshTokenGenerator,
        uow_factory: UnitOfWorkFactory = SQLAlchemyUnitOfWork,
        clock: Clock = system_clock,
        ctx: ServiceContext | None = None,
    ) -> AuthGateService:
        """Wire a gate and its lifecycle manager from shared collaborators."""
        manager = TokenLifecycleManager(
            settings=settings,
            codec=codec,
            generator=generator,
            uow_factory=uow_factory,
            clock=clock,
        )
        return cls(manager=manager, codec=codec, hasher=hasher, ctx=ctx)

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    @guarded
    def register(self, dto: RegisterIn, *, role: str = ROLE_USER) -> UserOut:
        """
        Create a user account.

        Public registration always uses the default ``User`` role; ``role`` is
        only passed by trusted callers such as the seed command.

        :param dto: Registration input.
        :type dto: RegisterIn
        :param role: Role tag for the new account.
        :type role: str
        :returns: Public user view.
        :rtype: UserOut
        :raises ConflictError: If the username is taken.
        """
        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            if repo.exists_by_username(dto.username):
                raise ConflictError("User", "username already exists")
            try:
                user = repo.add(
                    User(
                        username=dto.username,
                        password_hash=self.hasher.hash(dto.password),
                        role=role,
                    )
                )
            except IntegrityError as exc:
                if violates(exc, "uq_users_username", column="users.username"):
                    raise ConflictError("User", "username already exists") from exc
                raise
            out = _user_out(user)

        log.info("auth.registered", extra={"event": "auth.registered", "user_id": out.id})
        return out

    # ------------------------------------------------------------------ #
    # Login / refresh / logout
    # ------------------------------------------------------------------ #

    @guarded
    def login(self, dto: LoginIn) -> LoginOut:
        """
        Authenticate credentials and start a new session.

        :param dto: Login input.
        :type dto: LoginIn
        :returns: Token pair with username and role.
        :rtype: LoginOut
        :raises AuthenticationError: Same message for unknown user and wrong password.
        """
        with self.ro_uow() as uow:
            user = uow.users.find_by_username(dto.username)
            if user is None:
                # Burn a hash comparison so unknown users cost the same.
                self.hasher.verify(dto.password, _timing_hash(self.hasher))
                verified = False
            else:
                verified = self.hasher.verify(dto.password, user.password_hash)
            if not verified:
                log.warning("auth.login_failed", extra={"event": "auth.login_failed"})
                raise AuthenticationError()
            access = self.codec.issue(user)
            user_id, username, role = user.id, user.username, user.role

        session = self.manager.issue_session(user_id)
        log.info("auth.login", extra={"event": "auth.login", "user_id": user_id})
        return LoginOut(
            tokens=TokenPairOut(
                access_token=access.token,
                refresh_token=session.refresh_token,
                access_token_expiry=access.expires_at,
                refresh_token_expiry=session.refresh_expires_at,
            ),
            username=username,
            role=role,
        )

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Rotate a refresh token.

        :param dto: Refresh input.
        :type dto: RefreshIn
        :returns: New token pair.
        :rtype: TokenPairOut
        :raises InvalidToken | RevokedToken | ExpiredToken: When the token is rejected.
        """
        result = self.manager.refresh(dto.refresh_token).raise_for_status()
        access = cast(AccessTokenOut, result.access)
        session = cast(SessionOut, result.session)
        return TokenPairOut(
            access_token=access.token,
            refresh_token=session.refresh_token,
            access_token_expiry=access.expires_at,
            refresh_token_expiry=session.refresh_expires_at,
        )

    def logout(self, dto: LogoutIn) -> None:
        """
        Revoke one of the caller's refresh tokens, or all of them.

        :param dto: Logout input.
        :type dto: LogoutIn
        :raises NotFoundError: If the given token does not belong to the caller.
        """
        if not self.manager.revoke(dto.user_id, dto.refresh_token):
            raise NotFoundError("Token")

    # ------------------------------------------------------------------ #
    # Identity queries
    # ------------------------------------------------------------------ #

    @guarded
    def whoami(self, user_id: int) -> UserOut:
        """
        Return the profile of ``user_id``.

        :raises NotFoundError: If the user was deleted after the token was issued.
        """
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User")
            return _user_out(user)

    @guarded
    def list_users(self) -> list[UserOut]:
        """
        List every user. Requires the ``Admin`` role in the service context.

        :raises AuthorizationError: If the actor is not an admin.
        """
        self.ensure_role(ROLE_ADMIN)
        with self.ro_uow() as uow:
            return [_user_out(u) for u in uow.users.list(sort=["id"])]
