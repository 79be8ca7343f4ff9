"""Paginated history reads."""

from chatledger.domain.chat.message_store import check_sequence
from chatledger.domain.chat.models import ChatList, HistoryOrder, HistoryPage
from chatledger.domain.chat.ports import ChatRepository
from chatledger.shared.exceptions import ChatNotFoundError, ForbiddenError, InvalidRequestError


class HistoryReader:
    """Serves ordered pages of a chat's messages to the chat's owner."""

    def __init__(
        self,
        repository: ChatRepository,
        *,
        default_limit: int = 50,
        max_limit: int = 200,
    ) -> None:
        self.repository = repository
        self.default_limit = default_limit
        self.max_limit = max_limit

    def effective_limit(self, limit: int | None) -> int:
        if limit is None:
            return min(self.default_limit, self.max_limit)
        if limit < 1:
            raise InvalidRequestError("limit must be at least 1", details={"limit": limit})
        return min(limit, self.max_limit)

    async def read(
        self,
        chat_id: str,
        principal: str,
        limit: int | None = None,
        order: HistoryOrder | str = HistoryOrder.ASCENDING,
        cursor: int | None = None,
    ) -> HistoryPage:
        """Read one page of history.

        Ascending pages start at the earliest message, descending pages at the
        most recent one. ``cursor`` continues from a previous page's
        ``next_cursor``.

        Raises:
            ChatNotFoundError: If the chat does not exist.
            ForbiddenError: If ``principal`` does not own the chat.
            InvalidRequestError: On a bad limit, order or cursor.
        """
        try:
            order = HistoryOrder(order)
        except ValueError as exc:
            raise InvalidRequestError(
                f"order must be one of {[o.value for o in HistoryOrder]}",
                details={"order": str(order)},
            ) from exc
        page_size = self.effective_limit(limit)
        if cursor is not None and cursor < 0:
            raise InvalidRequestError("cursor must not be negative", details={"cursor": cursor})

        chat = await self.repository.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        if chat.owner != principal:
            raise ForbiddenError(chat_id)

        # One extra row tells us whether another page exists
        rows = await self.repository.list_messages(
            chat_id, limit=page_size + 1, order=order, cursor=cursor
        )
        check_sequence(chat_id, rows, descending=order is HistoryOrder.DESCENDING)

        has_more = len(rows) > page_size
        messages = rows[:page_size]
        return HistoryPage(
            chat=chat.summary(),
            messages=messages,
            order=order,
            limit=page_size,
            has_more=has_more,
            next_cursor=messages[-1].sequence if has_more else None,
        )

    async def list_chats(self, principal: str, limit: int | None = None, offset: int = 0) -> ChatList:
        """List the principal's chats, most recently active first."""
        if offset < 0:
            raise InvalidRequestError("offset must not be negative", details={"offset": offset})
        chats = await self.repository.list_chats(
            principal, limit=self.effective_limit(limit), offset=offset
        )
        total = await self.repository.count_chats(principal)
        return ChatList(items=[chat.summary() for chat in chats], total=total)
