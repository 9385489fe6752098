from authgate.models.refresh_token import RefreshToken
from authgate.models.user import ROLE_ADMIN, ROLE_USER, User

__all__ = [
    "ROLE_ADMIN",
    "ROLE_USER",
    "RefreshToken",
    "User",
]
