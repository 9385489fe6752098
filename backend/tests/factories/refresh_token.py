"""Factory Boy definition for :class:`authgate.models.refresh_token.RefreshToken`."""

from __future__ import annotations

from datetime import timedelta

from authgate.models.refresh_token import RefreshToken

import factory
from tests.factories import BaseFactory
from tests.factories.user import UserFactory
from tests.helpers.clock import T0


class RefreshTokenFactory(BaseFactory):
    """
    Build persisted refresh tokens.

    ``created_at`` defaults to ``T0`` so tests that drive
    a :class:`FixedClock` see consistent ages; ``expires_at`` is 30 days later.
    """

    class Meta:
        model = RefreshToken

    class Params:
        lifetime = timedelta(days=30)

    id = None
    user = factory.SubFactory(UserFactory)
    user_id = factory.SelfAttribute("user.id")
    token = factory.Sequence(lambda n: f"refresh-token-{n:04d}")
    created_at = T0
    expires_at = factory.LazyAttribute(lambda o: o.created_at + o.lifetime)
    revoked = False
    revoked_reason = None
