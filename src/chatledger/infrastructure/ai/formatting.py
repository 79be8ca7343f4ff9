"""Turn chat messages into provider request payloads."""

from collections.abc import Iterable
from typing import Any, assert_never

from chatledger.domain.chat.content import FilePart, ImagePart, TextPart
from chatledger.domain.chat.models import Message, Part, Role


def describe_file(part: FilePart) -> str:
    return f"[Attached file: {part.name} ({part.mime_type}) {part.url}]"


def system_prompt(messages: Iterable[Message]) -> str | None:
    """Join the text of every system message, or None if there is none."""
    texts = [
        part.text
        for message in messages
        if message.role is Role.SYSTEM
        for part in message.content
        if isinstance(part, TextPart)
    ]
    return "\n\n".join(texts) if texts else None


def plain_text(parts: Iterable[Part]) -> str:
    """Flatten parts into text; images become a short placeholder."""
    chunks = []
    for part in parts:
        if isinstance(part, TextPart):
            chunks.append(part.text)
        elif isinstance(part, ImagePart):
            chunks.append(f"[Image: {part.alt}]" if part.alt else "[Image]")
        elif isinstance(part, FilePart):
            chunks.append(describe_file(part))
        else:
            assert_never(part)
    return "\n".join(chunks)


def merge_turns(turns: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Merge consecutive turns of the same role.

    A user turn whose reply failed leaves two user turns in a row; providers
    that require alternating roles reject that.
    """
    merged: list[dict[str, Any]] = []
    for turn in turns:
        if not merged or merged[-1]["role"] != turn["role"]:
            merged.append(dict(turn))
            continue
        previous = merged[-1]["content"]
        if isinstance(previous, str):
            merged[-1]["content"] = f"{previous}\n\n{turn['content']}"
        else:
            merged[-1]["content"] = [*previous, *turn["content"]]
    return merged
