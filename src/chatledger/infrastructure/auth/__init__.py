"""Authentication infrastructure."""

from chatledger.infrastructure.auth.provider import AuthProvider, AuthUser

__all__ = [
    "AuthProvider",
    "AuthUser",
]
