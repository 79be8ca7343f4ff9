"""Repository implementations for database access."""

from chatledger.infrastructure.database.repositories.chat import SqlChatRepository

__all__ = [
    "SqlChatRepository",
]
