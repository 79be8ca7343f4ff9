"""Chat domain types.

Keep these types small and storage-agnostic so the SQL and in-memory
repositories, the service layer and the API schemas can all share them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from chatledger.domain.chat.content import FilePart, ImagePart, TextPart

Part = TextPart | ImagePart | FilePart


def utcnow() -> datetime:
    return datetime.now(UTC)


class Role(str, Enum):
    """Role of message sender."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class HistoryOrder(str, Enum):
    """Direction of a history read over the message total order."""

    ASCENDING = "asc"
    DESCENDING = "desc"


@dataclass(frozen=True)
class Chat:
    """A persisted conversation thread owned by exactly one principal.

    ``message_count`` is the last sequence number handed out in this chat;
    sequence numbers are contiguous, so it doubles as the message count.
    """

    id: str
    owner: str
    title: str
    created_at: datetime
    last_activity_at: datetime
    message_count: int = 0

    def summary(self) -> ChatSummary:
        return ChatSummary(
            id=self.id,
            owner=self.owner,
            title=self.title,
            created_at=self.created_at,
            last_activity_at=self.last_activity_at,
            message_count=self.message_count,
        )


@dataclass(frozen=True)
class ChatSummary:
    id: str
    owner: str
    title: str
    created_at: datetime
    last_activity_at: datetime
    message_count: int


@dataclass(frozen=True)
class MessageDraft:
    """A message that has been validated but not yet assigned a sequence number."""

    role: Role
    content: tuple[Part, ...]
    metadata: dict[str, Any] = field(default_factory=dict)
    # Stored only when the chat has no messages at write time
    only_if_empty: bool = False


@dataclass(frozen=True)
class Message:
    """One turn in a chat, ordered by ``(sequence, created_at)``."""

    chat_id: str
    sequence: int
    role: Role
    content: tuple[Part, ...]
    created_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedChat:
    chat: Chat
    created: bool


@dataclass(frozen=True)
class HistoryPage:
    chat: ChatSummary
    messages: list[Message]
    order: HistoryOrder
    limit: int
    has_more: bool
    next_cursor: int | None = None


@dataclass(frozen=True)
class ChatList:
    items: list[ChatSummary]
    total: int


@dataclass(frozen=True)
class SendResult:
    """Outcome of a completed send."""

    chat_id: str
    chat_created: bool
    user_message: Message
    assistant_message: Message


@dataclass(frozen=True)
class ModelCatalog:
    """Read-only snapshot of the models a send may target."""

    models: tuple[str, ...]
    default_model: str

    @classmethod
    def from_names(cls, names: list[str], default: str | None = None) -> ModelCatalog:
        if not names:
            raise ValueError("Model catalog must contain at least one model")
        return cls(models=tuple(names), default_model=default or names[0])

    def __contains__(self, model: object) -> bool:
        return model in self.models
