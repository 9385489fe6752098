"""Persisted refresh token model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authgate.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin, UTCDateTime
from .user import User

TOKEN_MAX_LENGTH = 128


class RefreshToken(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Long-lived, opaque, single-use refresh token.

    Fields
    ------
    token : str
        Opaque value handed to the client. Unique across the table.
    user_id : int
        Owner; rows vanish with their user (``ON DELETE CASCADE``).
    expires_at : datetime
        Absolute expiry (aware UTC).
    revoked : bool
        Once ``True`` it never flips back.
    revoked_reason : str | None
        Free-text reason recorded with the revocation.

    Notes
    -----
    ``user`` is a one-way relationship used for eager loading during refresh;
    :class:`User` deliberately has no back-reference.
    """

    __tablename__ = "refresh_tokens"

    token: Mapped[str] = mapped_column(String(TOKEN_MAX_LENGTH), nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    revoked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    revoked_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    user: Mapped[User] = relationship(User)

    __table_args__ = (
        UniqueConstraint("token", name="uq_refresh_tokens_token"),
        Index("ix_refresh_tokens_user_id_revoked", "user_id", "revoked"),
    )

    def __repr__(self) -> str:
        # Never render the token value.
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.revoked}>"

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` once ``now`` reaches ``expires_at``."""
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        """Return ``True`` when neither revoked nor expired at ``now``."""
        return not self.revoked and not self.is_expired(now)
