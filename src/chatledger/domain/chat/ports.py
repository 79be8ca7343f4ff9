"""Ports for chat persistence and reply generation."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from chatledger.domain.chat.models import Chat, HistoryOrder, Message, MessageDraft


class ChatRepository(Protocol):
    """Storage contract for chats and their append-only message logs.

    Implementations must make ``create_chat_if_absent`` atomic per chat id and
    must serialize sequence assignment per chat in ``append_messages``.
    Infrastructure failures surface as ``StorageError``.
    """

    async def get_chat(self, chat_id: str) -> Chat | None:
        """Return the chat or None if it does not exist."""

    async def create_chat_if_absent(self, chat: Chat) -> tuple[Chat, bool]:
        """Insert ``chat`` unless its id exists.

        Returns the stored record and whether this call created it. When the id
        already exists the existing record is returned untouched.
        """

    async def append_messages(
        self, chat_id: str, drafts: Sequence[MessageDraft]
    ) -> list[Message]:
        """Append drafts in order within one transaction.

        Drafts flagged ``only_if_empty`` are dropped unless the chat has no
        messages when the per-chat write lock is held.

        Raises:
            ChatNotFoundError: If the chat does not exist.
        """

    async def list_messages(
        self,
        chat_id: str,
        *,
        limit: int,
        order: HistoryOrder = HistoryOrder.ASCENDING,
        cursor: int | None = None,
    ) -> list[Message]:
        """Return up to ``limit`` messages in ``order``.

        With a cursor, ascending reads start after it and descending reads
        start before it.
        """

    async def list_chats(self, owner: str, *, limit: int, offset: int = 0) -> list[Chat]:
        """Return the owner's chats, most recently active first."""

    async def count_chats(self, owner: str) -> int:
        """Count the owner's chats."""


@dataclass(frozen=True)
class ReplyContext:
    """Everything a reply generator sees for one send."""

    chat_id: str
    principal: str
    model: str
    history: list[Message]
    message: Message


@dataclass(frozen=True)
class Reply:
    """Assistant turn produced by a reply generator.

    ``content`` may hold raw part mappings or validated parts; it is validated
    before it is stored.
    """

    content: Sequence[Any]
    metadata: dict[str, Any] = field(default_factory=dict)


class ReplyGenerator(Protocol):
    """Produces the assistant turn for a chat."""

    async def generate(self, context: ReplyContext) -> Reply:
        """Generate a reply. Any exception is treated as an upstream failure."""
