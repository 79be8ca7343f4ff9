"""Append-only message log.

Validates every draft on the write path, hands the batch to the repository
(which assigns sequence numbers under a per-chat lock) and verifies the
sequence numbers it gets back.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from chatledger.domain.chat.content import normalize_message
from chatledger.domain.chat.models import Message, MessageDraft, Role
from chatledger.domain.chat.ports import ChatRepository
from chatledger.observability.metrics import MESSAGES_APPENDED
from chatledger.shared.exceptions import InvalidContentError, SequenceIntegrityError
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)


def draft(
    role: Role | str,
    content: Any,
    metadata: Mapping[str, Any] | None = None,
    *,
    only_if_empty: bool = False,
) -> MessageDraft:
    """Validate raw content and build a draft.

    Raises:
        InvalidContentError: If the role or the content is invalid.
    """
    try:
        role = Role(role)
    except ValueError as exc:
        raise InvalidContentError(
            f"Unknown message role '{role}'",
            details={"role": str(role), "allowed": [r.value for r in Role]},
        ) from exc
    return MessageDraft(
        role=role,
        content=normalize_message(content),
        metadata=dict(metadata or {}),
        only_if_empty=only_if_empty,
    )


def check_sequence(chat_id: str, messages: Sequence[Message], *, descending: bool = False) -> None:
    """Verify that sequence numbers are strictly monotonic in the given direction.

    Raises:
        SequenceIntegrityError: On a duplicate or out-of-order sequence number.
    """
    for previous, current in zip(messages, messages[1:]):
        in_order = (
            current.sequence < previous.sequence
            if descending
            else current.sequence > previous.sequence
        )
        if not in_order:
            logger.critical(
                "sequence_integrity_fault",
                chat_id=chat_id,
                previous=previous.sequence,
                current=current.sequence,
            )
            raise SequenceIntegrityError(
                "Message log sequence is corrupted",
                details={
                    "chat_id": chat_id,
                    "previous_sequence": previous.sequence,
                    "sequence": current.sequence,
                },
            )


class MessageStore:
    """Validating front for the append-only message log of every chat."""

    def __init__(self, repository: ChatRepository) -> None:
        self.repository = repository

    async def append(
        self,
        chat_id: str,
        role: Role | str,
        content: Any,
        metadata: Mapping[str, Any] | None = None,
    ) -> Message:
        messages = await self.append_many(chat_id, [draft(role, content, metadata)])
        return messages[0]

    async def append_many(self, chat_id: str, drafts: Sequence[MessageDraft]) -> list[Message]:
        """Append several messages of one logical send as a single write.

        Drafts are re-validated here, so nothing unvalidated reaches storage.
        Either all drafts are stored with consecutive sequence numbers or none is,
        except that an ``only_if_empty`` draft is dropped when the chat already
        holds messages at write time.

        Raises:
            InvalidContentError: If any draft is invalid (nothing is written).
            ChatNotFoundError: If the chat does not exist.
            SequenceIntegrityError: If storage hands back a corrupted sequence.
        """
        if not drafts:
            raise InvalidContentError("Nothing to append")
        validated = [
            draft(d.role, d.content, d.metadata, only_if_empty=d.only_if_empty) for d in drafts
        ]

        messages = await self.repository.append_messages(chat_id, validated)

        check_sequence(chat_id, messages)
        if messages and messages[-1].sequence - messages[0].sequence != len(messages) - 1:
            logger.critical("sequence_integrity_fault", chat_id=chat_id, reason="gap_in_batch")
            raise SequenceIntegrityError(
                "Message log sequence is corrupted",
                details={"chat_id": chat_id, "sequences": [m.sequence for m in messages]},
            )

        for message in messages:
            MESSAGES_APPENDED.labels(role=message.role.value).inc()
        logger.debug(
            "messages_appended",
            chat_id=chat_id,
            sequences=[m.sequence for m in messages],
        )
        return messages
