"""Chat and message tables."""

from datetime import datetime
from typing import Any

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from chatledger.domain.chat.content import dump_parts, normalize_message
from chatledger.domain.chat.models import Chat, Message, Role
from chatledger.infrastructure.database.models.base import Base, JSONPayload, UTCDateTime


class ChatRecord(Base):
    """A conversation thread.

    ``message_count`` is the per-chat sequence counter: appends lock this row,
    bump the counter and use the new values as message sequence numbers.
    """

    __tablename__ = "chats"
    __table_args__ = (Index("ix_chats_owner_last_activity", "owner", "last_activity_at"),)

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False)

    # Derived from the first user text part, never recomputed
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<ChatRecord {self.id} owner={self.owner}>"

    @classmethod
    def from_domain(cls, chat: Chat) -> "ChatRecord":
        return cls(
            id=chat.id,
            owner=chat.owner,
            title=chat.title,
            message_count=chat.message_count,
            created_at=chat.created_at,
            last_activity_at=chat.last_activity_at,
        )

    def to_domain(self) -> Chat:
        return Chat(
            id=self.id,
            owner=self.owner,
            title=self.title,
            created_at=self.created_at,
            last_activity_at=self.last_activity_at,
            message_count=self.message_count,
        )


class MessageRecord(Base):
    """A single message, keyed by ``(chat_id, sequence)``.

    The composite primary key makes a duplicate sequence number in one chat
    impossible to persist.
    """

    __tablename__ = "chat_messages"

    chat_id: Mapped[str] = mapped_column(
        ForeignKey("chats.id", ondelete="CASCADE"),
        primary_key=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    # Canonical content parts:
    # [
    #     {"type": "text", "text": "..."},
    #     {"type": "image", "source": "url", "url": "https://..."},
    #     {"type": "file", "url": "...", "name": "report.pdf", "mime_type": "application/pdf"}
    # ]
    content: Mapped[list[dict[str, Any]]] = mapped_column(JSONPayload, nullable=False)
    message_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSONPayload, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<MessageRecord {self.chat_id}#{self.sequence} {self.role}>"

    def to_domain(self) -> Message:
        return Message(
            chat_id=self.chat_id,
            sequence=self.sequence,
            role=Role(self.role),
            content=normalize_message(self.content),
            created_at=self.created_at,
            metadata=dict(self.message_metadata or {}),
        )

    @classmethod
    def from_domain(cls, message: Message) -> "MessageRecord":
        return cls(
            chat_id=message.chat_id,
            sequence=message.sequence,
            role=message.role.value,
            content=dump_parts(message.content),
            message_metadata=dict(message.metadata),
            created_at=message.created_at,
        )
