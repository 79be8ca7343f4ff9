"""In-process chat repository.

Backs development runs and tests. Keeps the same guarantees as the SQL
repository: create-if-absent is atomic per chat id and sequence assignment is
serialized per chat, while different chats never wait on each other.
"""

import asyncio
import dataclasses
from collections.abc import Sequence

from chatledger.domain.chat.models import Chat, HistoryOrder, Message, MessageDraft, utcnow
from chatledger.shared.exceptions import ChatNotFoundError
from chatledger.shared.locks import KeyedLock


class InMemoryChatRepository:
    """Chats and message logs held in dictionaries."""

    def __init__(self) -> None:
        self._chats: dict[str, Chat] = {}
        self._messages: dict[str, list[Message]] = {}
        self._locks = KeyedLock()

    async def get_chat(self, chat_id: str) -> Chat | None:
        return self._chats.get(chat_id)

    async def create_chat_if_absent(self, chat: Chat) -> tuple[Chat, bool]:
        async with self._locks.acquire(chat.id):
            existing = self._chats.get(chat.id)
            if existing is not None:
                return existing, False
            self._chats[chat.id] = chat
            self._messages[chat.id] = []
            return chat, True

    async def append_messages(
        self, chat_id: str, drafts: Sequence[MessageDraft]
    ) -> list[Message]:
        async with self._locks.acquire(chat_id):
            chat = self._chats.get(chat_id)
            if chat is None:
                raise ChatNotFoundError(chat_id)

            # Yield while holding the chat lock, like a real storage round trip
            await asyncio.sleep(0)

            now = utcnow()
            sequence = chat.message_count
            appended = []
            for draft in drafts:
                if draft.only_if_empty and chat.message_count > 0:
                    continue
                sequence += 1
                appended.append(
                    Message(
                        chat_id=chat_id,
                        sequence=sequence,
                        role=draft.role,
                        content=draft.content,
                        created_at=now,
                        metadata=dict(draft.metadata),
                    )
                )
            self._messages[chat_id].extend(appended)
            self._chats[chat_id] = dataclasses.replace(
                chat, message_count=sequence, last_activity_at=now
            )
            return appended

    async def list_messages(
        self,
        chat_id: str,
        *,
        limit: int,
        order: HistoryOrder = HistoryOrder.ASCENDING,
        cursor: int | None = None,
    ) -> list[Message]:
        log = self._messages.get(chat_id, [])
        if order is HistoryOrder.DESCENDING:
            selected = [m for m in reversed(log) if cursor is None or m.sequence < cursor]
        else:
            selected = [m for m in log if cursor is None or m.sequence > cursor]
        return selected[:limit]

    async def list_chats(self, owner: str, *, limit: int, offset: int = 0) -> list[Chat]:
        chats = sorted(
            (chat for chat in self._chats.values() if chat.owner == owner),
            key=lambda chat: (chat.last_activity_at, chat.id),
            reverse=True,
        )
        return chats[offset : offset + limit]

    async def count_chats(self, owner: str) -> int:
        return sum(1 for chat in self._chats.values() if chat.owner == owner)
