"""Chat service - orchestrates a send from identity to assistant reply.

A send moves through these steps and ends either completed or rejected:

1. Validate the user's content parts and the requested model
2. Resolve or create the chat identity
3. Append the user turn (and the system prompt on an empty chat)
4. Ask the reply generator for the assistant turn, bounded by a timeout
5. Validate and append the assistant turn
6. Return the chat id and assistant message

A failure in step 4 or 5 does not roll back step 3: the user turn stays in the
log and the caller gets an ``UpstreamError`` telling it so.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

from chatledger.domain.chat.content import TextPart, normalize_message
from chatledger.domain.chat.history import HistoryReader
from chatledger.domain.chat.identity import ChatIdentityManager
from chatledger.domain.chat.message_store import MessageStore
from chatledger.domain.chat.models import (
    ChatList,
    HistoryOrder,
    HistoryPage,
    Message,
    MessageDraft,
    ModelCatalog,
    Role,
    SendResult,
)
from chatledger.domain.chat.ports import ChatRepository, Reply, ReplyContext, ReplyGenerator
from chatledger.observability.metrics import REPLY_FAILURES, REPLY_LATENCY
from chatledger.shared.exceptions import (
    InvalidContentError,
    UnknownModelError,
    UpstreamError,
)
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)


class ChatService:
    """Entry point for sending messages and reading chat history."""

    def __init__(
        self,
        repository: ChatRepository,
        reply_generator: ReplyGenerator,
        catalog: ModelCatalog,
        *,
        reply_timeout: float = 60.0,
        context_messages: int = 20,
        history_default_limit: int = 50,
        history_max_limit: int = 200,
        title_max_length: int = 50,
    ) -> None:
        self.repository = repository
        self.reply_generator = reply_generator
        self.catalog = catalog
        self.reply_timeout = reply_timeout
        self.context_messages = context_messages
        self.identity = ChatIdentityManager(repository, title_max_length=title_max_length)
        self.store = MessageStore(repository)
        self.history = HistoryReader(
            repository,
            default_limit=history_default_limit,
            max_limit=history_max_limit,
        )

    # ─────────────────────────────────────────────────────────────
    #                         SEND
    # ─────────────────────────────────────────────────────────────

    async def send_message(
        self,
        principal: str,
        model: str | None,
        content: Any,
        chat_id: str | None = None,
        system: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> SendResult:
        """Send a user turn and return the assistant's reply.

        Raises:
            InvalidContentError: Malformed content; nothing was written.
            UnknownModelError: Model not in the catalog; nothing was written.
            InvalidRequestError: Malformed chat id; nothing was written.
            ForbiddenError: Chat belongs to another principal; nothing was written.
            UpstreamError: Reply generation failed; the user turn is stored.
            StorageError: Persistence failed; safe to retry the whole send.
        """
        parts = normalize_message(content)
        model = self._resolve_model(model)

        resolved = await self.identity.resolve(principal, chat_id, parts)
        chat = resolved.chat

        drafts = []
        if system and system.strip():
            drafts.append(
                MessageDraft(
                    role=Role.SYSTEM,
                    content=(TextPart(text=system),),
                    only_if_empty=True,
                )
            )
        drafts.append(MessageDraft(role=Role.USER, content=parts, metadata=dict(metadata or {})))
        appended = await self.store.append_many(chat.id, drafts)
        user_message = appended[-1]

        reply = await self._generate_reply(principal, model, user_message)

        try:
            reply_parts = normalize_message(reply.content)
        except InvalidContentError as exc:
            REPLY_FAILURES.labels(reason="invalid_content").inc()
            logger.error(
                "reply_content_invalid",
                chat_id=chat.id,
                details=exc.details,
            )
            raise self._upstream_error(
                "Reply generator returned invalid content", user_message
            ) from exc

        assistant_message = await self.store.append(
            chat.id,
            Role.ASSISTANT,
            reply_parts,
            metadata={"model": model, **reply.metadata},
        )

        logger.info(
            "message_sent",
            chat_id=chat.id,
            chat_created=resolved.created,
            user_sequence=user_message.sequence,
            assistant_sequence=assistant_message.sequence,
            model=model,
        )

        return SendResult(
            chat_id=chat.id,
            chat_created=resolved.created,
            user_message=user_message,
            assistant_message=assistant_message,
        )

    # ─────────────────────────────────────────────────────────────
    #                        HISTORY
    # ─────────────────────────────────────────────────────────────

    async def get_history(
        self,
        principal: str,
        chat_id: str,
        limit: int | None = None,
        order: HistoryOrder | str = HistoryOrder.ASCENDING,
        cursor: int | None = None,
    ) -> HistoryPage:
        return await self.history.read(chat_id, principal, limit=limit, order=order, cursor=cursor)

    async def list_chats(
        self,
        principal: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> ChatList:
        return await self.history.list_chats(principal, limit=limit, offset=offset)

    # ─────────────────────────────────────────────────────────────
    #                        HELPERS
    # ─────────────────────────────────────────────────────────────

    def _resolve_model(self, model: str | None) -> str:
        if model is None:
            return self.catalog.default_model
        if model not in self.catalog:
            raise UnknownModelError(model, list(self.catalog.models))
        return model

    async def _build_context(self, principal: str, model: str, message: Message) -> ReplyContext:
        history: list[Message] = []
        if self.context_messages > 0:
            recent = await self.repository.list_messages(
                message.chat_id,
                limit=self.context_messages,
                order=HistoryOrder.DESCENDING,
                cursor=message.sequence,
            )
            history = list(reversed(recent))
        return ReplyContext(
            chat_id=message.chat_id,
            principal=principal,
            model=model,
            history=history,
            message=message,
        )

    async def _generate_reply(self, principal: str, model: str, message: Message) -> Reply:
        context = await self._build_context(principal, model, message)
        try:
            with REPLY_LATENCY.time():
                async with asyncio.timeout(self.reply_timeout):
                    return await self.reply_generator.generate(context)
        except TimeoutError as exc:
            REPLY_FAILURES.labels(reason="timeout").inc()
            logger.warning(
                "reply_generation_timed_out",
                chat_id=message.chat_id,
                timeout_seconds=self.reply_timeout,
            )
            raise self._upstream_error("Reply generation timed out", message) from exc
        except Exception as exc:
            REPLY_FAILURES.labels(reason="error").inc()
            logger.exception(
                "reply_generation_failed",
                chat_id=message.chat_id,
                error=str(exc),
            )
            raise self._upstream_error("Reply generation failed", message) from exc

    @staticmethod
    def _upstream_error(text: str, user_message: Message) -> UpstreamError:
        return UpstreamError(
            text,
            details={
                "chat_id": user_message.chat_id,
                "user_message_sequence": user_message.sequence,
                "user_message_stored": True,
            },
        )
