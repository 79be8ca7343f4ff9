"""SQLAlchemy ORM models."""

from chatledger.infrastructure.database.models.base import Base
from chatledger.infrastructure.database.models.chat import ChatRecord, MessageRecord

__all__ = [
    "Base",
    "ChatRecord",
    "MessageRecord",
]
