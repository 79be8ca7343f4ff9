"""Request and response schemas for the chat API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from chatledger.domain.chat.content import dump_parts
from chatledger.domain.chat.models import (
    ChatList,
    ChatSummary,
    HistoryOrder,
    HistoryPage,
    Message,
    SendResult,
)


class SendMessageRequest(BaseModel):
    """Request to send a user turn.

    ``content`` is validated by the chat engine, not here, so malformed parts
    come back with the ``invalid_content`` error code.
    """

    model: str | None = None
    chat_id: str | None = None
    content: list[Any] = Field(..., description="Ordered content parts")
    system: str | None = Field(None, max_length=20000)
    metadata: dict[str, Any] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    """A message in a chat."""

    chat_id: str
    sequence: int
    role: str
    content: list[dict[str, Any]]
    metadata: dict[str, Any] = {}
    created_at: datetime

    @classmethod
    def from_domain(cls, message: Message) -> "MessageResponse":
        return cls(
            chat_id=message.chat_id,
            sequence=message.sequence,
            role=message.role.value,
            content=dump_parts(message.content),
            metadata=message.metadata,
            created_at=message.created_at,
        )


class SendMessageResponse(BaseModel):
    chat_id: str
    chat_created: bool
    user_message: MessageResponse
    assistant_message: MessageResponse

    @classmethod
    def from_domain(cls, result: SendResult) -> "SendMessageResponse":
        return cls(
            chat_id=result.chat_id,
            chat_created=result.chat_created,
            user_message=MessageResponse.from_domain(result.user_message),
            assistant_message=MessageResponse.from_domain(result.assistant_message),
        )


class ChatSummaryResponse(BaseModel):
    id: str
    owner: str
    title: str
    created_at: datetime
    last_activity_at: datetime
    message_count: int

    @classmethod
    def from_domain(cls, chat: ChatSummary) -> "ChatSummaryResponse":
        return cls(
            id=chat.id,
            owner=chat.owner,
            title=chat.title,
            created_at=chat.created_at,
            last_activity_at=chat.last_activity_at,
            message_count=chat.message_count,
        )


class HistoryResponse(BaseModel):
    """One page of a chat's history."""

    chat: ChatSummaryResponse
    messages: list[MessageResponse]
    order: HistoryOrder
    limit: int
    has_more: bool
    next_cursor: int | None = None

    @classmethod
    def from_domain(cls, page: HistoryPage) -> "HistoryResponse":
        return cls(
            chat=ChatSummaryResponse.from_domain(page.chat),
            messages=[MessageResponse.from_domain(m) for m in page.messages],
            order=page.order,
            limit=page.limit,
            has_more=page.has_more,
            next_cursor=page.next_cursor,
        )


class ChatListResponse(BaseModel):
    """List of chats."""

    items: list[ChatSummaryResponse]
    total: int

    @classmethod
    def from_domain(cls, chats: ChatList) -> "ChatListResponse":
        return cls(
            items=[ChatSummaryResponse.from_domain(c) for c in chats.items],
            total=chats.total,
        )


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: dict[str, Any] = {}
