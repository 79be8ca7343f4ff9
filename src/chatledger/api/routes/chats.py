"""Chat API routes - send messages and read history."""

from typing import Annotated

from fastapi import APIRouter, Query

from chatledger.api.deps import ChatServiceDep
from chatledger.api.middleware.auth import CurrentUser
from chatledger.api.schemas import (
    ChatListResponse,
    ErrorResponse,
    HistoryResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from chatledger.domain.chat.models import HistoryOrder

router = APIRouter(prefix="/chats", tags=["Chats"])

ERROR_RESPONSES: dict[int | str, dict] = {
    403: {"model": ErrorResponse, "description": "Chat belongs to another principal"},
    404: {"model": ErrorResponse, "description": "Chat not found"},
    422: {"model": ErrorResponse, "description": "Invalid content or request"},
}


@router.post(
    "/messages",
    response_model=SendMessageResponse,
    responses={
        **ERROR_RESPONSES,
        502: {
            "model": ErrorResponse,
            "description": "Reply generation failed; the user message is stored",
        },
    },
)
async def send_message(
    request: SendMessageRequest,
    user: CurrentUser,
    service: ChatServiceDep,
) -> SendMessageResponse:
    """Send a user message and get the assistant's reply.

    Omit ``chat_id`` to start a new chat, or pass one to continue (or create
    under a client-chosen id). ``system`` only applies to a chat that has no
    messages yet.
    """
    result = await service.send_message(
        principal=user.id,
        model=request.model,
        content=request.content,
        chat_id=request.chat_id,
        system=request.system,
        metadata=request.metadata,
    )
    return SendMessageResponse.from_domain(result)


@router.get("/{chat_id}/messages", response_model=HistoryResponse, responses=ERROR_RESPONSES)
async def get_history(
    chat_id: str,
    user: CurrentUser,
    service: ChatServiceDep,
    limit: Annotated[int | None, Query(ge=1)] = None,
    order: HistoryOrder = HistoryOrder.ASCENDING,
    cursor: Annotated[int | None, Query(ge=0)] = None,
) -> HistoryResponse:
    """Get one page of a chat's messages.

    ``order=asc`` pages from the first message, ``order=desc`` from the latest.
    Pass ``next_cursor`` from a page as ``cursor`` to continue.
    """
    page = await service.get_history(
        user.id,
        chat_id,
        limit=limit,
        order=order,
        cursor=cursor,
    )
    return HistoryResponse.from_domain(page)


@router.get("", response_model=ChatListResponse)
async def list_chats(
    user: CurrentUser,
    service: ChatServiceDep,
    limit: Annotated[int | None, Query(ge=1)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ChatListResponse:
    """List the caller's chats, most recently active first."""
    chats = await service.list_chats(user.id, limit=limit, offset=offset)
    return ChatListResponse.from_domain(chats)
