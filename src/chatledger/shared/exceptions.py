"""Custom exception hierarchy for chatledger.

Every error carries a stable machine-readable ``code`` plus a human-readable
message. All of them are recoverable by the caller except
``SequenceIntegrityError``, which signals a corrupted message log.
"""

from typing import Any


class ChatLedgerError(Exception):
    """Base exception for all chatledger errors."""

    code: str = "internal_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ----- Authentication Errors -----


class AuthenticationError(ChatLedgerError):
    """Authentication failed."""

    code = "authentication_error"


class TokenExpiredError(AuthenticationError):
    """JWT token has expired."""

    pass


class TokenInvalidError(AuthenticationError):
    """JWT token is invalid."""

    pass


class ForbiddenError(ChatLedgerError):
    """Principal is not allowed to access the chat."""

    code = "forbidden"

    def __init__(self, chat_id: str) -> None:
        super().__init__(
            message="Chat belongs to a different principal",
            details={"chat_id": chat_id},
        )


# ----- Resource Errors -----


class ChatNotFoundError(ChatLedgerError):
    """Referenced chat does not exist."""

    code = "chat_not_found"

    def __init__(self, chat_id: str) -> None:
        super().__init__(
            message="Chat not found",
            details={"chat_id": chat_id},
        )


# ----- Validation Errors -----


class ValidationError(ChatLedgerError):
    """Input validation failed."""

    code = "invalid_content"


class InvalidContentError(ValidationError):
    """Malformed content part or empty message."""

    pass


class InvalidRequestError(ValidationError):
    """Request parameters are out of range or malformed."""

    code = "invalid_request"


class UnknownModelError(ValidationError):
    """Requested model is not in the catalog."""

    code = "unknown_model"

    def __init__(self, model: str, available: list[str]) -> None:
        super().__init__(
            message=f"Model '{model}' is not available",
            details={"model": model, "available_models": available},
        )


# ----- External Service Errors -----


class ExternalServiceError(ChatLedgerError):
    """Error from an external collaborator."""

    pass


class UpstreamError(ExternalServiceError):
    """Reply generation failed or timed out.

    The user turn that triggered the reply is already stored; a retry will see
    it in the chat history.
    """

    code = "upstream_error"


class StorageError(ExternalServiceError):
    """Persistence layer unavailable. Safe to retry the whole send."""

    code = "storage_error"


# ----- Integrity Errors -----


class SequenceIntegrityError(ChatLedgerError):
    """Duplicate or out-of-order sequence numbers detected in a chat log."""

    code = "integrity_fault"
