"""Anthropic Claude reply generator."""

import time
from typing import Any, assert_never

import anthropic
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from chatledger.domain.chat.content import FilePart, ImagePart, TextPart
from chatledger.domain.chat.models import Message, Part, Role
from chatledger.domain.chat.ports import Reply, ReplyContext
from chatledger.infrastructure.ai.formatting import describe_file, merge_turns, system_prompt
from chatledger.shared.exceptions import UpstreamError
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)


def to_blocks(parts: tuple[Part, ...]) -> list[dict[str, Any]]:
    """Convert content parts to Anthropic content blocks."""
    blocks: list[dict[str, Any]] = []
    for part in parts:
        if isinstance(part, TextPart):
            blocks.append({"type": "text", "text": part.text})
        elif isinstance(part, ImagePart):
            if part.source == "url":
                source = {"type": "url", "url": part.url}
            else:
                source = {"type": "base64", "media_type": part.mime_type, "data": part.data}
            blocks.append({"type": "image", "source": source})
        elif isinstance(part, FilePart):
            blocks.append({"type": "text", "text": describe_file(part)})
        else:
            assert_never(part)
    return blocks


def to_turns(history: list[Message], message: Message) -> list[dict[str, Any]]:
    turns = [
        {"role": m.role.value, "content": to_blocks(m.content)}
        for m in [*history, message]
        if m.role is not Role.SYSTEM
    ]
    merged = merge_turns(turns)
    # The Messages API requires the conversation to open with a user turn
    while merged and merged[0]["role"] != Role.USER.value:
        merged.pop(0)
    return merged


class AnthropicReplyGenerator:
    """Generates replies with the Anthropic Messages API.

    Features:
    - Retry with exponential backoff on rate limits and connection errors
    - System messages of the chat become the system prompt
    - Structured logging with token usage and latency
    """

    def __init__(
        self,
        api_key: str,
        *,
        max_tokens: int = 4096,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self.max_tokens = max_tokens

    @retry(
        retry=retry_if_exception_type((anthropic.RateLimitError, anthropic.APIConnectionError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def _create(self, **kwargs: Any) -> Any:
        return await self.client.messages.create(**kwargs)

    async def generate(self, context: ReplyContext) -> Reply:
        request: dict[str, Any] = {
            "model": context.model,
            "max_tokens": self.max_tokens,
            "messages": to_turns(context.history, context.message),
        }
        system = system_prompt([*context.history, context.message])
        if system:
            request["system"] = system

        start_time = time.monotonic()
        try:
            response = await self._create(**request)
        except anthropic.RateLimitError as e:
            logger.warning("anthropic_rate_limited", chat_id=context.chat_id, error=str(e))
            raise UpstreamError("Reply provider is rate limited") from e
        except anthropic.APIStatusError as e:
            logger.error("anthropic_api_error", status=e.status_code, error=str(e))
            raise UpstreamError(f"Reply provider error: {e.status_code}") from e
        except anthropic.APIConnectionError as e:
            logger.error("anthropic_connection_error", error=str(e))
            raise UpstreamError("Connection to reply provider failed") from e

        latency_ms = (time.monotonic() - start_time) * 1000
        content = [
            {"type": "text", "text": block.text}
            for block in response.content
            if block.type == "text" and block.text.strip()
        ]

        logger.debug(
            "anthropic_reply_generated",
            chat_id=context.chat_id,
            model=context.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            latency_ms=round(latency_ms, 2),
        )

        return Reply(
            content=content,
            metadata={
                "provider": "anthropic",
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
                "stop_reason": response.stop_reason,
                "latency_ms": round(latency_ms, 2),
            },
        )

    async def close(self) -> None:
        await self.client.close()
