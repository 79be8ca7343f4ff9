"""FastAPI dependencies for API routes."""

from typing import Annotated

from fastapi import Depends, Request

from chatledger.bootstrap import Engine, build_engine
from chatledger.config import get_settings
from chatledger.domain.chat.service import ChatService


async def get_engine(request: Request) -> Engine:
    """Get the app's shared engine, building it once on first use."""
    state = request.app.state
    engine = getattr(state, "engine", None)
    if engine is not None:
        return engine

    async with state.engine_lock:
        engine = getattr(state, "engine", None)
        if engine is None:
            engine = await build_engine(get_settings())
            state.engine = engine
    return engine


async def get_chat_service(engine: Annotated[Engine, Depends(get_engine)]) -> ChatService:
    """Get a chat service around the shared engine."""
    return engine.chat_service(get_settings())


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]

__all__ = [
    "ChatServiceDep",
    "get_chat_service",
    "get_engine",
]
