"""Reply generator factory - returns the configured provider."""

from chatledger.config import Settings
from chatledger.domain.chat.ports import ReplyGenerator
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)


def build_reply_generator(settings: Settings) -> ReplyGenerator:
    """Build the reply generator selected by REPLY_PROVIDER.

    Usage:
        # In .env:
        REPLY_PROVIDER=deepseek  # or "anthropic", "echo"
        DEEPSEEK_API_KEY=sk-...
    """
    provider = settings.reply_provider

    if provider == "anthropic":
        if not settings.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY is not configured")
        from chatledger.infrastructure.ai.anthropic_generator import AnthropicReplyGenerator

        logger.info("using_reply_provider", provider="anthropic")
        return AnthropicReplyGenerator(
            settings.anthropic_api_key,
            max_tokens=settings.reply_max_tokens,
        )

    if provider == "deepseek":
        if not settings.deepseek_api_key:
            raise ValueError("DEEPSEEK_API_KEY is not configured")
        from chatledger.infrastructure.ai.deepseek_generator import DeepSeekReplyGenerator

        logger.info("using_reply_provider", provider="deepseek")
        return DeepSeekReplyGenerator(
            settings.deepseek_api_key,
            base_url=settings.deepseek_base_url,
            max_tokens=settings.reply_max_tokens,
        )

    from chatledger.infrastructure.ai.echo import EchoReplyGenerator

    logger.warning("using_reply_provider", provider="echo", message="Echo replies only")
    return EchoReplyGenerator()


async def close_reply_generator(generator: object | None) -> None:
    """Close the generator's HTTP client if it has one."""
    close = getattr(generator, "close", None)
    if close is not None:
        await close()
