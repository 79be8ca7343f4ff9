"""Reply generation backends."""

from chatledger.infrastructure.ai.echo import EchoReplyGenerator
from chatledger.infrastructure.ai.factory import build_reply_generator, close_reply_generator

__all__ = [
    "EchoReplyGenerator",
    "build_reply_generator",
    "close_reply_generator",
]
