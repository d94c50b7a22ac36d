"""Telegram keyboard builders."""

from typing import Optional

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from solbot.session.intents import IntentKind


def send_choice_keyboard() -> InlineKeyboardMarkup:
    """Create the SOL / token choice keyboard for /send."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="◎ Send SOL", callback_data="send_sol"),
                InlineKeyboardButton(text="🪙 Send Token", callback_data="send_token"),
            ]
        ]
    )


def confirm_keyboard(kind: IntentKind, action_id: str) -> InlineKeyboardMarkup:
    """Create a confirm/cancel keyboard bound to one pending action."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Confirm", callback_data=f"{kind.confirm_callback}:{action_id}"),
                InlineKeyboardButton(text="❌ Cancel", callback_data=f"{kind.cancel_callback}:{action_id}"),
            ]
        ]
    )


def parse_action_callback(data: str) -> tuple[str, Optional[str]]:
    """Split ``confirm_swap:ab12cd34`` into its prefix and action id.

    Buttons without an id (``confirm_swap``) yield ``None``.
    """
    prefix, _, action_id = data.partition(":")
    return prefix, action_id or None
