"""Last-resort error handler for update processing."""

import logging

from aiogram.types import ErrorEvent

from solbot.errors import BotError
from solbot.utils.locks import LockTimeoutError

logger = logging.getLogger(__name__)

GENERIC_ERROR_TEXT = "An error occurred. Please try again or contact support."
BUSY_TEXT = "Still working on your previous request. Please wait a moment."


async def handle_error(event: ErrorEvent) -> bool:
    """Log the failure and tell the user something went wrong."""
    update = event.update
    exception = event.exception

    if isinstance(exception, LockTimeoutError):
        logger.warning(f"Update {update.update_id} dropped: {exception}")
        text = BUSY_TEXT
    elif isinstance(exception, BotError):
        logger.info(f"Update {update.update_id} failed with {exception.kind.value}: {exception.message}")
        text = exception.message
    else:
        logger.error(f"Error handling update {update.update_id}: {exception}", exc_info=exception)
        text = GENERIC_ERROR_TEXT

    if update.message is not None:
        await update.message.answer(text)
    elif update.callback_query is not None:
        await update.callback_query.answer(text, show_alert=True)
    return True
