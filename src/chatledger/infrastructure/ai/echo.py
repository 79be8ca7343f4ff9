"""Deterministic reply generator for development and tests.

Never use in production!
"""

from chatledger.domain.chat.content import TextPart
from chatledger.domain.chat.ports import Reply, ReplyContext


class EchoReplyGenerator:
    """Answers every message with ``You said: <text>``."""

    async def generate(self, context: ReplyContext) -> Reply:
        texts = [part.text for part in context.message.content if isinstance(part, TextPart)]
        if texts:
            said = " ".join(texts)
        else:
            count = len(context.message.content)
            said = f"[{count} attachment{'s' if count != 1 else ''}]"
        return Reply(
            content=[{"type": "text", "text": f"You said: {said}"}],
            metadata={"provider": "echo"},
        )

    async def close(self) -> None:
        """No-op for echo."""
        pass
