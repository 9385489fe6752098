# authgate/infra/security/werkzeug_password_hasher.py
from __future__ import annotations

from dataclasses import dataclass

from werkzeug.security import check_password_hash, generate_password_hash

from authgate.services._shared.ports import PasswordHasher


@dataclass(frozen=True, slots=True)
class WerkzeugPasswordHasher(PasswordHasher):
    """Password hashing through :mod:`werkzeug.security` (scrypt by default)."""

    method: str = "scrypt"

    def hash(self, password: str) -> str:
        if not isinstance(password, str) or not password:
            raise ValueError("Password must be a non-empty string.")
        return generate_password_hash(password, method=self.method)

    def verify(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            return False
        # ``check_password_hash`` is not typed and returns ``Any``; coerce to bool for mypy.
        return bool(check_password_hash(password_hash, password))
