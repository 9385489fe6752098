"""User model definition for the credential store."""

from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from authgate.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin

ROLE_USER = "User"
ROLE_ADMIN = "Admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authentication identity.

    Fields
    ------
    username : str
        Login handle. Unique, trimmed, immutable once persisted.
    password_hash : str
        Output of the configured password hasher; never the raw password.
    role : str
        Authorization tag, ``"User"`` (default) or ``"Admin"``.
    created_at : datetime
        Creation timestamp (from mixin).

    Notes
    -----
    Refresh tokens point at users through a foreign key only. There is no
    ``tokens`` collection here; use the refresh token repository instead.
    """

    __tablename__ = "users"

    # Columns
    username: Mapped[str] = mapped_column(String(50), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_USER)

    # Constraints & indexes
    __table_args__ = (UniqueConstraint("username", name="uq_users_username"),)

    # -------------------- Validators --------------------
    @validates("username")
    def _normalize_username(self, key: str, value: str) -> str:
        """
        Normalize and validate username.

        :param key: Field name (``username``).
        :type key: str
        :param value: Username to normalize.
        :type value: str
        :returns: Trimmed username.
        :rtype: str
        :raises ValueError: If missing, blank, too long, or changed after insert.
        """
        if not isinstance(value, str):
            raise ValueError("Username is required.")
        v = value.strip()
        if not v:
            raise ValueError("Username is required.")
        if len(v) > 50:
            raise ValueError("Username must be at most 50 characters.")
        if self.id is not None and self.username is not None and v != self.username:
            raise ValueError("Username cannot be changed.")
        return v

    @validates("role")
    def _validate_role(self, key: str, value: str) -> str:
        if value not in ROLES:
            raise ValueError(f"Unknown role: {value!r}")
        return value
