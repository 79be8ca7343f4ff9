"""JWT authentication provider."""

from jose import ExpiredSignatureError, JWTError, jwt

from chatledger.infrastructure.auth.provider import AuthProvider, AuthUser
from chatledger.shared.exceptions import TokenExpiredError, TokenInvalidError
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)


class JWTAuthProvider(AuthProvider):
    """Verifies tokens signed by the external auth service.

    The ``sub`` claim is the principal id.
    """

    def __init__(self, secret: str, *, algorithm: str = "HS256", audience: str | None = None) -> None:
        if not secret:
            raise ValueError("JWT_SECRET is not configured")
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience

    async def verify_token(self, token: str) -> AuthUser:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except JWTError as e:
            logger.warning("jwt_decode_failed", error=str(e))
            raise TokenInvalidError("Token is invalid")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenInvalidError("Token carries no subject")

        return AuthUser(id=subject, claims=payload)
