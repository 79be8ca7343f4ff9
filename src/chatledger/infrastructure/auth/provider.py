"""Abstract authentication provider interface.

The chat engine only needs "an authenticated principal identifier"; providers
turn a bearer token into one. Token issuance lives elsewhere.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AuthUser:
    """Authenticated principal.

    ``id`` is the principal identifier that owns chats.
    """

    id: str
    claims: dict[str, Any] = field(default_factory=dict)


class AuthProvider(ABC):
    """Abstract authentication provider.

    Implementations:
    - JWTAuthProvider: verifies HS256/RS256 tokens issued by an external service
    - DevAuthProvider: local development, the token is the principal id
    """

    @abstractmethod
    async def verify_token(self, token: str) -> AuthUser:
        """Verify a bearer token and return the authenticated principal.

        Raises:
            TokenExpiredError: If the token has expired
            TokenInvalidError: If the token is invalid
            AuthenticationError: For other auth failures
        """
        pass

    async def close(self) -> None:
        pass
