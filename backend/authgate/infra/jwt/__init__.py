"""JWT adapters."""

from .pyjwt_access_token_codec import PyJWTAccessTokenCodec

__all__ = ["PyJWTAccessTokenCodec"]
