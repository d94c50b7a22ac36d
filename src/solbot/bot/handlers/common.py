"""Helpers shared by the handlers."""

import logging
from typing import Optional

from aiogram import F
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from solbot.bot.keyboards import parse_action_callback
from solbot.session.controller import FlowController, Reply
from solbot.session.intents import IntentKind

logger = logging.getLogger(__name__)

# Free text that is not a command
FLOW_TEXT = F.text & ~F.text.startswith("/")


async def send_reply(message: Message, reply: Reply) -> None:
    await message.answer(reply.text, reply_markup=reply.keyboard)


async def show_in_callback(callback: CallbackQuery, reply: Reply) -> None:
    """Replace the prompt the button belongs to with the reply."""
    if isinstance(callback.message, Message):
        try:
            await callback.message.edit_text(reply.text, reply_markup=reply.keyboard)
        except TelegramBadRequest as e:
            logger.debug(f"Could not edit callback message: {e}")
            await callback.message.answer(reply.text, reply_markup=reply.keyboard)
    await callback.answer()


async def delete_quietly(message: Message) -> None:
    """Delete a message, ignoring messages the bot may not delete."""
    try:
        await message.delete()
    except TelegramBadRequest as e:
        logger.warning(f"Could not delete message in chat {message.chat.id}: {e}")


def callback_chat_id(callback: CallbackQuery) -> Optional[int]:
    if callback.message is None:
        return None
    return callback.message.chat.id


def callback_action_id(callback: CallbackQuery) -> Optional[str]:
    _, action_id = parse_action_callback(callback.data or "")
    return action_id


async def confirm_action(
    callback: CallbackQuery,
    state: FSMContext,
    controller: FlowController,
    kind: IntentKind,
) -> None:
    """Run the pending action behind a confirm button."""
    chat_id = callback_chat_id(callback)
    if chat_id is None:
        await callback.answer("This message is no longer available.")
        return

    if isinstance(callback.message, Message):
        try:
            await callback.message.edit_text("⏳ Processing...")
        except TelegramBadRequest as e:
            logger.debug(f"Could not edit callback message: {e}")

    reply = await controller.confirm(state, chat_id, kind, callback_action_id(callback))
    await show_in_callback(callback, reply)


async def cancel_action(
    callback: CallbackQuery,
    state: FSMContext,
    controller: FlowController,
    kind: IntentKind,
) -> None:
    """Discard the pending action behind a cancel button."""
    reply = await controller.cancel_pending(state, kind, callback_action_id(callback))
    await show_in_callback(callback, reply)
