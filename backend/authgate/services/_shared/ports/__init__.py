"""
authgate.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) that define the contracts
for token management and authentication infrastructure.

These ports decouple the service layer from concrete implementations of
token signing, refresh token generation, password hashing and storage.

Modules
-------
- :mod:`token_codec`:
    Defines :class:`~.AccessTokenCodec` - signing and verification of access tokens.

- :mod:`refresh_token_generator`:
    Defines :class:`~.RefreshTokenGenerator` - opaque refresh token values.

- :mod:`password_hasher`:
    Defines :class:`~.PasswordHasher` - one-way password hashing.

- :mod:`credential_store`:
    Defines :class:`~.UserStore`, :class:`~.RefreshTokenStore` and
    :class:`~.TokenUnitOfWork` - transactional persistence.

- :mod:`clock`:
    Defines :data:`~.Clock` and :func:`~.system_clock`.

Design Notes
------------
Concrete adapters (PyJWT, ``secrets``, Werkzeug, SQLAlchemy) live under
``authgate.infra`` and ``authgate.repositories``.
"""

from __future__ import annotations

from .clock import Clock, system_clock
from .credential_store import (
    RefreshTokenStore,
    TokenUnitOfWork,
    UnitOfWorkFactory,
    UserStore,
)
from .password_hasher import PasswordHasher
from .refresh_token_generator import RefreshTokenGenerator
from .token_codec import AccessTokenCodec, Principal

__all__ = [
    "AccessTokenCodec",
    "Clock",
    "PasswordHasher",
    "Principal",
    "RefreshTokenGenerator",
    "RefreshTokenStore",
    "TokenUnitOfWork",
    "UnitOfWorkFactory",
    "UserStore",
    "system_clock",
]
