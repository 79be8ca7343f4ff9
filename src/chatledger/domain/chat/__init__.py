"""Chat domain: content validation, identity, message log, history and sends."""

from chatledger.domain.chat.content import (
    FilePart,
    ImagePart,
    TextPart,
    dump_parts,
    normalize,
    normalize_message,
)
from chatledger.domain.chat.models import (
    Chat,
    ChatSummary,
    HistoryOrder,
    HistoryPage,
    Message,
    ModelCatalog,
    Role,
    SendResult,
)
from chatledger.domain.chat.ports import ChatRepository, Reply, ReplyContext, ReplyGenerator
from chatledger.domain.chat.service import ChatService

__all__ = [
    "Chat",
    "ChatRepository",
    "ChatService",
    "ChatSummary",
    "FilePart",
    "HistoryOrder",
    "HistoryPage",
    "ImagePart",
    "Message",
    "ModelCatalog",
    "Reply",
    "ReplyContext",
    "ReplyGenerator",
    "Role",
    "SendResult",
    "TextPart",
    "dump_parts",
    "normalize",
    "normalize_message",
]
