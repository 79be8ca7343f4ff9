"""Unit tests for the append-only message store."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from chatledger.domain.chat.content import normalize_message
from chatledger.domain.chat.message_store import MessageStore, check_sequence, draft
from chatledger.domain.chat.models import Chat, Message, MessageDraft, Role
from chatledger.shared.exceptions import (
    ChatNotFoundError,
    InvalidContentError,
    SequenceIntegrityError,
)

NOW = datetime(2025, 1, 1, tzinfo=UTC)
HELLO = [{"type": "text", "text": "hello"}]


def message(sequence: int, role: Role = Role.USER) -> Message:
    return Message(
        chat_id="c1",
        sequence=sequence,
        role=role,
        content=normalize_message(HELLO),
        created_at=NOW,
    )


@pytest.fixture
async def chat(repository) -> Chat:
    chat, _ = await repository.create_chat_if_absent(
        Chat(id="c1", owner="juan", title="hello", created_at=NOW, last_activity_at=NOW)
    )
    return chat


class TestDraft:
    def test_validates_content(self):
        result = draft("user", HELLO, {"client": "web"})

        assert result.role is Role.USER
        assert result.metadata == {"client": "web"}

    def test_unknown_role_rejected(self):
        with pytest.raises(InvalidContentError):
            draft("tool", HELLO)

    def test_invalid_content_rejected(self):
        with pytest.raises(InvalidContentError):
            draft(Role.USER, [])


class TestCheckSequence:
    def test_ascending_ok(self):
        check_sequence("c1", [message(1), message(2), message(5)])

    def test_descending_ok(self):
        check_sequence("c1", [message(3), message(2), message(1)], descending=True)

    @pytest.mark.parametrize("sequences", [[1, 1], [2, 1], [1, 3, 2]])
    def test_out_of_order_raises(self, sequences):
        with pytest.raises(SequenceIntegrityError):
            check_sequence("c1", [message(s) for s in sequences])


class TestMessageStore:
    """Tests for MessageStore appends."""

    @pytest.mark.asyncio
    async def test_first_message_gets_sequence_one(self, repository, chat):
        store = MessageStore(repository)

        stored = await store.append(chat.id, Role.USER, HELLO)

        assert stored.sequence == 1
        assert stored.chat_id == chat.id
        assert stored.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_sequences_are_contiguous(self, repository, chat):
        store = MessageStore(repository)

        first = await store.append(chat.id, Role.USER, HELLO)
        second = await store.append(chat.id, Role.ASSISTANT, HELLO)
        third = await store.append(chat.id, Role.USER, HELLO)

        assert [first.sequence, second.sequence, third.sequence] == [1, 2, 3]
        updated = await repository.get_chat(chat.id)
        assert updated.message_count == 3
        assert updated.last_activity_at >= chat.last_activity_at

    @pytest.mark.asyncio
    async def test_append_many_is_one_batch(self, repository, chat):
        store = MessageStore(repository)

        messages = await store.append_many(
            chat.id,
            [draft(Role.SYSTEM, [{"type": "text", "text": "be brief"}]), draft(Role.USER, HELLO)],
        )

        assert [(m.sequence, m.role) for m in messages] == [(1, Role.SYSTEM), (2, Role.USER)]

    @pytest.mark.asyncio
    async def test_only_if_empty_draft_dropped_on_non_empty_chat(self, repository, chat):
        store = MessageStore(repository)
        await store.append(chat.id, Role.USER, HELLO)

        messages = await store.append_many(
            chat.id,
            [
                draft(Role.SYSTEM, [{"type": "text", "text": "be brief"}], only_if_empty=True),
                draft(Role.USER, HELLO),
            ],
        )

        assert [(m.sequence, m.role) for m in messages] == [(2, Role.USER)]

    @pytest.mark.asyncio
    async def test_invalid_draft_writes_nothing(self, repository, chat):
        store = MessageStore(repository)
        bad = MessageDraft(role=Role.USER, content=())

        with pytest.raises(InvalidContentError):
            await store.append_many(chat.id, [draft(Role.USER, HELLO), bad])

        assert (await repository.get_chat(chat.id)).message_count == 0

    @pytest.mark.asyncio
    async def test_unknown_chat_raises(self, repository):
        store = MessageStore(repository)

        with pytest.raises(ChatNotFoundError):
            await store.append("missing", Role.USER, HELLO)

    @pytest.mark.asyncio
    async def test_concurrent_appends_get_distinct_contiguous_sequences(self, repository, chat):
        store = MessageStore(repository)

        results = await asyncio.gather(
            *(store.append(chat.id, Role.USER, [{"type": "text", "text": f"m{i}"}]) for i in range(50))
        )

        assert sorted(m.sequence for m in results) == list(range(1, 51))

    @pytest.mark.asyncio
    async def test_corrupted_repository_result_raises(self):
        repository = AsyncMock()
        repository.append_messages = AsyncMock(return_value=[message(1), message(1)])
        store = MessageStore(repository)

        with pytest.raises(SequenceIntegrityError):
            await store.append_many("c1", [draft(Role.USER, HELLO), draft(Role.USER, HELLO)])

    @pytest.mark.asyncio
    async def test_gap_in_batch_raises(self):
        repository = AsyncMock()
        repository.append_messages = AsyncMock(return_value=[message(1), message(3)])
        store = MessageStore(repository)

        with pytest.raises(SequenceIntegrityError) as exc_info:
            await store.append_many("c1", [draft(Role.USER, HELLO), draft(Role.USER, HELLO)])

        assert exc_info.value.code == "integrity_fault"
