"""SQL chat repository."""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatledger.domain.chat.models import Chat, HistoryOrder, Message, MessageDraft, utcnow
from chatledger.infrastructure.database.models.chat import ChatRecord, MessageRecord
from chatledger.shared.exceptions import ChatNotFoundError, SequenceIntegrityError, StorageError
from chatledger.shared.locks import KeyedLock
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)


class SqlChatRepository:
    """Chat repository on top of an async SQLAlchemy session factory.

    Every operation runs in its own short transaction, so an acknowledged
    append is committed before the caller moves on and is never rolled back by
    a later failure in the same request.

    Sequence numbers come from the ``chats.message_count`` counter, read under
    ``SELECT ... FOR UPDATE`` and guarded in-process by a per-chat lock. The
    ``(chat_id, sequence)`` primary key turns any slip into an integrity fault
    instead of a silently duplicated message.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._locks = KeyedLock()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session, session.begin():
                yield session
        except IntegrityError:
            raise
        except (SQLAlchemyError, OSError) as exc:
            logger.error("storage_operation_failed", error=str(exc))
            raise StorageError("Chat storage is unavailable", details={"error": str(exc)}) from exc

    async def get_chat(self, chat_id: str) -> Chat | None:
        async with self._transaction() as session:
            record = await session.get(ChatRecord, chat_id)
            return record.to_domain() if record is not None else None

    async def create_chat_if_absent(self, chat: Chat) -> tuple[Chat, bool]:
        try:
            async with self._transaction() as session:
                session.add(ChatRecord.from_domain(chat))
            return chat, True
        except IntegrityError:
            logger.debug("chat_create_conflict", chat_id=chat.id)

        # Someone else created it first; observe their record
        existing = await self.get_chat(chat.id)
        if existing is None:
            raise StorageError(
                "Chat creation conflicted but no chat was found",
                details={"chat_id": chat.id},
            )
        return existing, False

    async def append_messages(
        self, chat_id: str, drafts: Sequence[MessageDraft]
    ) -> list[Message]:
        async with self._locks.acquire(chat_id), self._transaction() as session:
            result = await session.execute(
                select(ChatRecord).where(ChatRecord.id == chat_id).with_for_update()
            )
            record = result.scalar_one_or_none()
            if record is None:
                raise ChatNotFoundError(chat_id)

            now = utcnow()
            was_empty = record.message_count == 0
            messages = []
            for draft in drafts:
                if draft.only_if_empty and not was_empty:
                    continue
                record.message_count += 1
                messages.append(
                    Message(
                        chat_id=chat_id,
                        sequence=record.message_count,
                        role=draft.role,
                        content=draft.content,
                        created_at=now,
                        metadata=dict(draft.metadata),
                    )
                )
            record.last_activity_at = now
            session.add_all([MessageRecord.from_domain(message) for message in messages])

            try:
                await session.flush()
            except IntegrityError as exc:
                logger.critical(
                    "sequence_integrity_fault",
                    chat_id=chat_id,
                    sequences=[m.sequence for m in messages],
                )
                raise SequenceIntegrityError(
                    "Duplicate sequence number in chat log",
                    details={"chat_id": chat_id, "sequences": [m.sequence for m in messages]},
                ) from exc

        return messages

    async def list_messages(
        self,
        chat_id: str,
        *,
        limit: int,
        order: HistoryOrder = HistoryOrder.ASCENDING,
        cursor: int | None = None,
    ) -> list[Message]:
        query = select(MessageRecord).where(MessageRecord.chat_id == chat_id)
        if order is HistoryOrder.DESCENDING:
            if cursor is not None:
                query = query.where(MessageRecord.sequence < cursor)
            query = query.order_by(MessageRecord.sequence.desc(), MessageRecord.created_at.desc())
        else:
            if cursor is not None:
                query = query.where(MessageRecord.sequence > cursor)
            query = query.order_by(MessageRecord.sequence.asc(), MessageRecord.created_at.asc())

        async with self._transaction() as session:
            result = await session.execute(query.limit(limit))
            return [record.to_domain() for record in result.scalars().all()]

    async def list_chats(self, owner: str, *, limit: int, offset: int = 0) -> list[Chat]:
        query = (
            select(ChatRecord)
            .where(ChatRecord.owner == owner)
            .order_by(ChatRecord.last_activity_at.desc(), ChatRecord.id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self._transaction() as session:
            result = await session.execute(query)
            return [record.to_domain() for record in result.scalars().all()]

    async def count_chats(self, owner: str) -> int:
        query = select(func.count()).select_from(ChatRecord).where(ChatRecord.owner == owner)
        async with self._transaction() as session:
            result = await session.execute(query)
            return result.scalar_one()
