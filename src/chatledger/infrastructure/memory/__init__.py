"""In-process storage backend."""

from chatledger.infrastructure.memory.repository import InMemoryChatRepository

__all__ = ["InMemoryChatRepository"]
