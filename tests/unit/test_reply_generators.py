"""Unit tests for reply generators.

Provider SDK clients are mocked; no network calls are made.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest
from tenacity import wait_none

from chatledger.domain.chat.content import normalize_message
from chatledger.domain.chat.models import Message, Role
from chatledger.domain.chat.ports import ReplyContext
from chatledger.infrastructure.ai.anthropic_generator import (
    AnthropicReplyGenerator,
    to_blocks,
    to_turns,
)
from chatledger.infrastructure.ai.deepseek_generator import (
    DeepSeekReplyGenerator,
    to_chat_messages,
)
from chatledger.infrastructure.ai.echo import EchoReplyGenerator
from chatledger.infrastructure.ai.factory import build_reply_generator
from chatledger.infrastructure.ai.formatting import merge_turns, plain_text, system_prompt
from chatledger.shared.exceptions import UpstreamError

NOW = datetime(2025, 1, 1, tzinfo=UTC)
ANTHROPIC_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
DEEPSEEK_REQUEST = httpx.Request("POST", "https://api.deepseek.com/chat/completions")


def msg(sequence: int, role: Role, *parts: dict) -> Message:
    return Message(
        chat_id="c1",
        sequence=sequence,
        role=role,
        content=normalize_message(list(parts)),
        created_at=NOW,
    )


def text(value: str) -> dict:
    return {"type": "text", "text": value}


def make_context(*history: Message, message: Message | None = None, model: str = "m") -> ReplyContext:
    return ReplyContext(
        chat_id="c1",
        principal="juan",
        model=model,
        history=list(history),
        message=message or msg(len(history) + 1, Role.USER, text("hello")),
    )


@pytest.fixture
def mock_anthropic_client() -> MagicMock:
    """Create mock Anthropic client."""
    mock = MagicMock()
    mock.messages.create = AsyncMock(
        return_value=MagicMock(
            content=[MagicMock(type="text", text="Hi there!")],
            usage=MagicMock(input_tokens=100, output_tokens=50),
            stop_reason="end_turn",
        )
    )
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def mock_openai_client() -> MagicMock:
    """Create mock OpenAI-compatible client."""
    mock = MagicMock()
    mock.chat.completions.create = AsyncMock(
        return_value=MagicMock(
            choices=[MagicMock(message=MagicMock(content="Hi there!"), finish_reason="stop")],
            usage=MagicMock(prompt_tokens=100, completion_tokens=50),
        )
    )
    mock.close = AsyncMock()
    return mock


class TestFormatting:
    """Tests for provider-neutral formatting helpers."""

    def test_system_prompt_joins_system_messages(self):
        messages = [
            msg(1, Role.SYSTEM, text("Be brief.")),
            msg(2, Role.USER, text("hello")),
        ]

        assert system_prompt(messages) == "Be brief."
        assert system_prompt(messages[1:]) is None

    def test_plain_text_placeholders(self):
        parts = normalize_message(
            [
                text("see"),
                {"type": "image", "source": "url", "url": "https://x/a.png", "alt": "chart"},
                {"type": "file", "url": "https://x/a.pdf", "name": "a.pdf", "mime_type": "application/pdf"},
            ]
        )

        flat = plain_text(parts)

        assert flat.splitlines()[0] == "see"
        assert "[Image: chart]" in flat
        assert "a.pdf" in flat

    def test_merge_turns_joins_same_role(self):
        merged = merge_turns(
            [
                {"role": "user", "content": "a"},
                {"role": "user", "content": "b"},
                {"role": "assistant", "content": "c"},
            ]
        )

        assert merged == [
            {"role": "user", "content": "a\n\nb"},
            {"role": "assistant", "content": "c"},
        ]

    def test_merge_turns_concatenates_blocks(self):
        merged = merge_turns(
            [
                {"role": "user", "content": [text("a")]},
                {"role": "user", "content": [text("b")]},
            ]
        )

        assert merged == [{"role": "user", "content": [text("a"), text("b")]}]


class TestAnthropicPayload:
    def test_to_blocks_images(self):
        parts = normalize_message(
            [
                {"type": "image", "source": "url", "url": "https://x/a.png"},
                {"type": "image", "source": "base64", "data": "aGVsbG8=", "mime_type": "image/png"},
            ]
        )

        blocks = to_blocks(parts)

        assert blocks[0] == {"type": "image", "source": {"type": "url", "url": "https://x/a.png"}}
        assert blocks[1]["source"] == {
            "type": "base64",
            "media_type": "image/png",
            "data": "aGVsbG8=",
        }

    def test_to_turns_skips_system_and_leading_assistant(self):
        history = [
            msg(1, Role.SYSTEM, text("Be brief.")),
            msg(2, Role.ASSISTANT, text("orphan")),
            msg(3, Role.USER, text("q1")),
            msg(4, Role.ASSISTANT, text("a1")),
        ]

        turns = to_turns(history, msg(5, Role.USER, text("q2")))

        assert [t["role"] for t in turns] == ["user", "assistant", "user"]


class TestAnthropicReplyGenerator:
    """Tests for AnthropicReplyGenerator."""

    @pytest.mark.asyncio
    async def test_generate(self, mock_anthropic_client):
        generator = AnthropicReplyGenerator("sk-ant-test", client=mock_anthropic_client)
        context = make_context(
            msg(1, Role.SYSTEM, text("Be brief.")),
            model="claude-sonnet-4-20250514",
        )

        reply = await generator.generate(context)

        assert reply.content == [{"type": "text", "text": "Hi there!"}]
        assert reply.metadata["provider"] == "anthropic"
        assert reply.metadata["output_tokens"] == 50
        kwargs = mock_anthropic_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-sonnet-4-20250514"
        assert kwargs["system"] == "Be brief."
        assert kwargs["messages"] == [{"role": "user", "content": [text("hello")]}]

    @pytest.mark.asyncio
    async def test_status_error_becomes_upstream_error(self, mock_anthropic_client):
        mock_anthropic_client.messages.create.side_effect = anthropic.InternalServerError(
            "boom",
            response=httpx.Response(500, request=ANTHROPIC_REQUEST),
            body=None,
        )
        generator = AnthropicReplyGenerator("sk-ant-test", client=mock_anthropic_client)

        with pytest.raises(UpstreamError):
            await generator.generate(make_context())

        assert mock_anthropic_client.messages.create.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self, mock_anthropic_client):
        mock_anthropic_client.messages.create.side_effect = anthropic.RateLimitError(
            "slow down",
            response=httpx.Response(429, request=ANTHROPIC_REQUEST),
            body=None,
        )
        generator = AnthropicReplyGenerator("sk-ant-test", client=mock_anthropic_client)

        with patch.object(AnthropicReplyGenerator._create.retry, "wait", wait_none()):
            with pytest.raises(UpstreamError):
                await generator.generate(make_context())

        assert mock_anthropic_client.messages.create.await_count == 3

    @pytest.mark.asyncio
    async def test_close(self, mock_anthropic_client):
        generator = AnthropicReplyGenerator("sk-ant-test", client=mock_anthropic_client)

        await generator.close()

        mock_anthropic_client.close.assert_awaited_once()


class TestDeepSeekReplyGenerator:
    """Tests for DeepSeekReplyGenerator."""

    def test_to_chat_messages_leads_with_system(self):
        messages = to_chat_messages(
            [msg(1, Role.SYSTEM, text("Be brief."))],
            msg(2, Role.USER, text("hello")),
        )

        assert messages == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hello"},
        ]

    @pytest.mark.asyncio
    async def test_generate(self, mock_openai_client):
        generator = DeepSeekReplyGenerator("sk-test", client=mock_openai_client)

        reply = await generator.generate(make_context(model="deepseek-chat"))

        assert reply.content == [{"type": "text", "text": "Hi there!"}]
        assert reply.metadata["provider"] == "deepseek"
        assert reply.metadata["finish_reason"] == "stop"

    @pytest.mark.asyncio
    async def test_empty_reply_is_upstream_error(self, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content="  "), finish_reason="stop")],
        )
        generator = DeepSeekReplyGenerator("sk-test", client=mock_openai_client)

        with pytest.raises(UpstreamError):
            await generator.generate(make_context())

    @pytest.mark.asyncio
    async def test_connection_error_is_upstream_error(self, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=DEEPSEEK_REQUEST
        )
        generator = DeepSeekReplyGenerator("sk-test", client=mock_openai_client)

        with patch.object(DeepSeekReplyGenerator._create.retry, "wait", wait_none()):
            with pytest.raises(UpstreamError):
                await generator.generate(make_context())

        assert mock_openai_client.chat.completions.create.await_count == 3


class TestEchoReplyGenerator:
    @pytest.mark.asyncio
    async def test_echoes_text(self):
        reply = await EchoReplyGenerator().generate(make_context())

        assert reply.content == [{"type": "text", "text": "You said: hello"}]

    @pytest.mark.asyncio
    async def test_attachment_only_message(self):
        message = msg(1, Role.USER, {"type": "image", "source": "url", "url": "https://x"})

        reply = await EchoReplyGenerator().generate(make_context(message=message))

        assert reply.content == [{"type": "text", "text": "You said: [1 attachment]"}]


class TestFactory:
    """Tests for build_reply_generator()."""

    def test_echo_by_default(self):
        settings = MagicMock(reply_provider="echo")

        assert isinstance(build_reply_generator(settings), EchoReplyGenerator)

    def test_anthropic_requires_key(self):
        settings = MagicMock(reply_provider="anthropic", anthropic_api_key="")

        with pytest.raises(ValueError) as exc_info:
            build_reply_generator(settings)

        assert "ANTHROPIC_API_KEY" in str(exc_info.value)

    def test_deepseek(self):
        settings = MagicMock(
            reply_provider="deepseek",
            deepseek_api_key="sk-test",
            deepseek_base_url="https://api.deepseek.com",
            reply_max_tokens=1024,
        )

        generator = build_reply_generator(settings)

        assert isinstance(generator, DeepSeekReplyGenerator)
        assert generator.max_tokens == 1024
