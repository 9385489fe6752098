# authgate/infra/security/secure_refresh_token_generator.py
from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass

from authgate.services._shared.ports import RefreshTokenGenerator

REFRESH_TOKEN_BYTES = 64


@dataclass(frozen=True, slots=True)
class SecureRefreshTokenGenerator(RefreshTokenGenerator):
    """
    Opaque refresh tokens drawn from the OS CSPRNG.

    64 random bytes, standard base64 encoded: 88 printable characters.
    """

    num_bytes: int = REFRESH_TOKEN_BYTES

    def generate(self) -> str:
        return base64.b64encode(secrets.token_bytes(self.num_bytes)).decode("ascii")
