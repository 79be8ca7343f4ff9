"""Wiring of the chat engine from settings.

Builds the shared, process-wide pieces once (repository, reply generator,
model catalog) so request handlers only assemble a ``ChatService`` around them.
"""

from dataclasses import dataclass

from chatledger.config import Settings
from chatledger.domain.chat.models import ModelCatalog
from chatledger.domain.chat.ports import ChatRepository, ReplyGenerator
from chatledger.domain.chat.service import ChatService
from chatledger.infrastructure.ai.factory import build_reply_generator, close_reply_generator
from chatledger.shared.logging import get_logger

logger = get_logger(__name__)


def build_catalog(settings: Settings) -> ModelCatalog:
    """Snapshot the configured model list.

    The default is DEFAULT_MODEL, else the active provider's model when it is
    listed, else the first listed model.
    """
    models = settings.available_models
    default = settings.default_model
    if default is None:
        provider_model = {
            "anthropic": settings.anthropic_model,
            "deepseek": settings.deepseek_model,
            "echo": "echo",
        }[settings.reply_provider]
        if provider_model in models:
            default = provider_model
    return ModelCatalog.from_names(models, default)


async def build_repository(settings: Settings) -> ChatRepository:
    if settings.storage_backend == "database":
        from chatledger.infrastructure.database.connection import (
            create_schema,
            get_engine,
            get_session_factory,
        )
        from chatledger.infrastructure.database.repositories.chat import SqlChatRepository

        if settings.database_auto_create:
            await create_schema(get_engine(settings))
        logger.info("using_storage_backend", backend="database")
        return SqlChatRepository(get_session_factory(settings))

    from chatledger.infrastructure.memory.repository import InMemoryChatRepository

    logger.warning("using_storage_backend", backend="memory", message="Data is not persisted")
    return InMemoryChatRepository()


@dataclass
class Engine:
    """Process-wide collaborators shared by every request."""

    repository: ChatRepository
    reply_generator: ReplyGenerator
    catalog: ModelCatalog

    def chat_service(self, settings: Settings) -> ChatService:
        return ChatService(
            self.repository,
            self.reply_generator,
            self.catalog,
            reply_timeout=settings.reply_timeout_seconds,
            context_messages=settings.reply_context_messages,
            history_default_limit=settings.history_default_limit,
            history_max_limit=settings.history_max_limit,
            title_max_length=settings.title_max_length,
        )


async def build_engine(settings: Settings) -> Engine:
    return Engine(
        repository=await build_repository(settings),
        reply_generator=build_reply_generator(settings),
        catalog=build_catalog(settings),
    )


async def close_engine(engine: Engine | None, settings: Settings) -> None:
    if engine is None:
        return
    await close_reply_generator(engine.reply_generator)
    if settings.storage_backend == "database":
        from chatledger.infrastructure.database.connection import dispose_engine

        await dispose_engine()
