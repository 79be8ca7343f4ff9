"""DeepSeek reply generator (OpenAI-compatible API)."""

import time
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from chatledger.domain.chat.models import Message, Role
from chatledger.domain.chat.ports import Reply, ReplyContext
from chatledger.infrastructure.ai.formatting import merge_turns, plain_text, system_prompt
from chatledger.shared.exceptions import UpstreamError
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)


def to_chat_messages(history: list[Message], message: Message) -> list[dict[str, Any]]:
    """Build chat-completions messages; the chat's system turns lead the list."""
    turns = [
        {"role": m.role.value, "content": plain_text(m.content)}
        for m in [*history, message]
        if m.role is not Role.SYSTEM
    ]
    system = system_prompt([*history, message])
    leading = [{"role": "system", "content": system}] if system else []
    return leading + merge_turns(turns)


class DeepSeekReplyGenerator:
    """Generates replies with DeepSeek's chat completions endpoint.

    DeepSeek chat models are text-only, so images and files reach the model as
    short textual placeholders.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.deepseek.com",
        max_tokens: int = 4096,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.max_tokens = max_tokens

    @retry(
        retry=retry_if_exception_type((RateLimitError, APIConnectionError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def _create(self, **kwargs: Any) -> Any:
        return await self.client.chat.completions.create(**kwargs)

    async def generate(self, context: ReplyContext) -> Reply:
        start_time = time.monotonic()
        try:
            response = await self._create(
                model=context.model,
                max_tokens=self.max_tokens,
                messages=to_chat_messages(context.history, context.message),
            )
        except RateLimitError as e:
            logger.warning("deepseek_rate_limited", chat_id=context.chat_id, error=str(e))
            raise UpstreamError("Reply provider is rate limited") from e
        except APIStatusError as e:
            logger.error("deepseek_api_error", status=e.status_code, error=str(e))
            raise UpstreamError(f"Reply provider error: {e.status_code}") from e
        except APIConnectionError as e:
            logger.error("deepseek_connection_error", error=str(e))
            raise UpstreamError("Connection to reply provider failed") from e

        latency_ms = (time.monotonic() - start_time) * 1000
        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            raise UpstreamError("Reply provider returned an empty reply")

        usage = response.usage
        logger.debug(
            "deepseek_reply_generated",
            chat_id=context.chat_id,
            model=context.model,
            input_tokens=usage.prompt_tokens if usage else None,
            output_tokens=usage.completion_tokens if usage else None,
            latency_ms=round(latency_ms, 2),
        )

        return Reply(
            content=[{"type": "text", "text": text}],
            metadata={
                "provider": "deepseek",
                "input_tokens": usage.prompt_tokens if usage else None,
                "output_tokens": usage.completion_tokens if usage else None,
                "finish_reason": response.choices[0].finish_reason,
                "latency_ms": round(latency_ms, 2),
            },
        )

    async def close(self) -> None:
        await self.client.close()
