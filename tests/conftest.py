"""
Pytest configuration and fixtures for chatledger tests.
"""
import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

# Keep a developer's .env out of the test run
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("AUTH_PROVIDER", "dev")
os.environ.setdefault("REPLY_PROVIDER", "echo")

from chatledger.bootstrap import Engine  # noqa: E402
from chatledger.domain.chat.models import ModelCatalog  # noqa: E402
from chatledger.domain.chat.ports import Reply, ReplyContext  # noqa: E402
from chatledger.domain.chat.service import ChatService  # noqa: E402
from chatledger.infrastructure.ai.echo import EchoReplyGenerator  # noqa: E402
from chatledger.infrastructure.auth.dev import DevAuthProvider  # noqa: E402
from chatledger.infrastructure.memory.repository import InMemoryChatRepository  # noqa: E402

TEST_MODELS = ["claude-sonnet-4-20250514", "deepseek-chat", "echo"]


class RecordingReplyGenerator:
    """Reply generator double that records every context it sees."""

    def __init__(self, reply: Reply | None = None, error: Exception | None = None) -> None:
        self.reply = reply or Reply(content=[{"type": "text", "text": "Hi there!"}])
        self.error = error
        self.contexts: list[ReplyContext] = []

    async def generate(self, context: ReplyContext) -> Reply:
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def catalog() -> ModelCatalog:
    """Model catalog used by the service fixtures."""
    return ModelCatalog.from_names(TEST_MODELS, "claude-sonnet-4-20250514")


@pytest.fixture
def repository() -> InMemoryChatRepository:
    """Fresh in-memory repository."""
    return InMemoryChatRepository()


@pytest.fixture
def make_generator() -> type[RecordingReplyGenerator]:
    """Reply generator double class; call with reply= or error=."""
    return RecordingReplyGenerator


@pytest.fixture
def reply_generator() -> RecordingReplyGenerator:
    return RecordingReplyGenerator()


@pytest.fixture
def make_service(repository: InMemoryChatRepository, catalog: ModelCatalog):
    """Build a ChatService around the shared repository."""

    def _make(generator: Any = None, **kwargs: Any) -> ChatService:
        return ChatService(
            repository,
            generator or RecordingReplyGenerator(),
            catalog,
            **kwargs,
        )

    return _make


@pytest.fixture
def service(make_service, reply_generator: RecordingReplyGenerator) -> ChatService:
    return make_service(reply_generator)


@pytest.fixture
def engine(catalog: ModelCatalog) -> Engine:
    """Engine wired with in-memory storage and echo replies."""
    return Engine(
        repository=InMemoryChatRepository(),
        reply_generator=EchoReplyGenerator(),
        catalog=catalog,
    )


@pytest.fixture
def app(engine: Engine) -> FastAPI:
    """Create test FastAPI application."""
    from chatledger.main import create_app

    app = create_app()
    app.state.engine = engine
    app.state.auth_provider = DevAuthProvider()
    return app


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def auth_headers():
    """Dev auth: the bearer token is the principal id."""

    def _headers(principal: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {principal}"}

    return _headers
