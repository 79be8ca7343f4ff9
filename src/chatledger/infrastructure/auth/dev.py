"""Development authentication provider for local testing.

This provider bypasses real authentication: the bearer token itself is taken
as the principal id. NEVER use in production!
"""

import re

from chatledger.infrastructure.auth.provider import AuthProvider, AuthUser
from chatledger.shared.exceptions import TokenInvalidError
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)

PRINCIPAL_PATTERN = re.compile(r"^[\w.@:-]{1,255}$")


class DevAuthProvider(AuthProvider):
    """Development auth provider: ``Authorization: Bearer juan`` is principal ``juan``."""

    async def verify_token(self, token: str) -> AuthUser:
        if not PRINCIPAL_PATTERN.match(token):
            raise TokenInvalidError("Dev token must be a plain principal id")

        logger.debug(
            "dev_auth_used",
            principal=token,
            message="Using development auth - DO NOT USE IN PRODUCTION",
        )
        return AuthUser(id=token)
