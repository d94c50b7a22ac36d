"""Dispatcher middlewares."""

import logging
from typing import Any, Awaitable, Callable, Optional

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from solbot.utils.locks import ChatLock

logger = logging.getLogger(__name__)


class ChatSerialMiddleware(BaseMiddleware):
    """Handle the events of one chat strictly one after another.

    Registered as an outer middleware on messages and callback queries, so
    the FSM read-modify-write of a handler is never interleaved with another
    event from the same chat. Chats do not block each other.
    """

    def __init__(self, timeout: Optional[float] = 180.0):
        self.timeout = timeout

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        chat = data.get("event_chat")
        if chat is None:
            return await handler(event, data)

        async with ChatLock(chat.id, timeout=self.timeout, operation=type(event).__name__):
            return await handler(event, data)
