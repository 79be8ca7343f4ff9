"""Chat identity resolution.

Resolves the chat a send belongs to, creating it lazily. Creation goes through
the repository's atomic create-if-absent, never a check-then-create, so two
racing sends for one new client-supplied id end up in the same chat.
"""

import re
from collections.abc import Sequence
from uuid import uuid4

from chatledger.domain.chat.content import first_text
from chatledger.domain.chat.models import Chat, Part, ResolvedChat, utcnow
from chatledger.domain.chat.ports import ChatRepository
from chatledger.observability.metrics import CHATS_CREATED
from chatledger.shared.exceptions import ForbiddenError, InvalidRequestError
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TITLE = "New chat"
CHAT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:-]{1,128}$")


def new_chat_id() -> str:
    return f"c_{uuid4().hex}"


def derive_title(content: Sequence[Part], max_length: int = 50) -> str:
    """Derive a short title from the first text part of a message."""
    text = first_text(content)
    if text is None:
        return DEFAULT_TITLE

    title = " ".join(text.split())
    if len(title) <= max_length:
        return title

    # Cut at a word boundary when one is reasonably close
    cut = title[:max_length]
    last_space = cut.rfind(" ")
    if last_space > max_length // 2:
        cut = cut[:last_space]
    return cut.rstrip() + "..."


class ChatIdentityManager:
    """Resolves or mints chat identities for a principal."""

    def __init__(self, repository: ChatRepository, *, title_max_length: int = 50) -> None:
        self.repository = repository
        self.title_max_length = title_max_length

    async def resolve(
        self,
        principal: str,
        client_chat_id: str | None = None,
        content: Sequence[Part] = (),
    ) -> ResolvedChat:
        """Return the chat for this send, creating it if needed.

        Raises:
            InvalidRequestError: If the client-supplied id is malformed.
            ForbiddenError: If the id belongs to another principal.
        """
        if client_chat_id is not None:
            if not CHAT_ID_PATTERN.match(client_chat_id):
                raise InvalidRequestError(
                    "Chat id must be 1-128 characters of letters, digits, '_', '.', ':' or '-'",
                    details={"chat_id": client_chat_id},
                )
            existing = await self.repository.get_chat(client_chat_id)
            if existing is not None:
                self._check_owner(existing, principal)
                return ResolvedChat(chat=existing, created=False)

        chat_id = client_chat_id or new_chat_id()
        now = utcnow()
        candidate = Chat(
            id=chat_id,
            owner=principal,
            title=derive_title(content, self.title_max_length),
            created_at=now,
            last_activity_at=now,
        )
        chat, created = await self.repository.create_chat_if_absent(candidate)

        # Lost a creation race: the winner may belong to someone else
        self._check_owner(chat, principal)

        if created:
            CHATS_CREATED.labels(client_supplied=str(client_chat_id is not None).lower()).inc()
            logger.info(
                "chat_created",
                chat_id=chat.id,
                principal=principal,
                client_supplied=client_chat_id is not None,
            )
        return ResolvedChat(chat=chat, created=created)

    @staticmethod
    def _check_owner(chat: Chat, principal: str) -> None:
        if chat.owner != principal:
            logger.warning("chat_access_forbidden", chat_id=chat.id, principal=principal)
            raise ForbiddenError(chat.id)
