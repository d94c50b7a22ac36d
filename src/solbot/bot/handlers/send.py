"""Send SOL / SPL token handlers."""

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from solbot.bot.handlers.common import (
    FLOW_TEXT,
    cancel_action,
    confirm_action,
    send_reply,
    show_in_callback,
)
from solbot.session.controller import FlowController
from solbot.session.intents import IntentKind
from solbot.session.states import FlowStates

router = Router()


@router.message(Command("send"))
async def cmd_send(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Offer SOL or token transfer."""
    await send_reply(message, await controller.begin_send(state, message.chat.id))


@router.callback_query(F.data == "send_sol")
async def handle_choose_sol(callback: CallbackQuery, state: FSMContext, controller: FlowController) -> None:
    await show_in_callback(callback, await controller.choose_send_native(state))


@router.callback_query(F.data == "send_token")
async def handle_choose_token(callback: CallbackQuery, state: FSMContext, controller: FlowController) -> None:
    await show_in_callback(callback, await controller.choose_send_token(state))


@router.message(FlowStates.sending_native, FLOW_TEXT)
async def handle_transfer_input(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Receive ``address amount``."""
    await send_reply(message, await controller.submit_transfer(state, message.text or ""))


@router.message(FlowStates.sending_token, FLOW_TEXT)
async def handle_token_transfer_input(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Receive ``address token_mint amount``."""
    await send_reply(message, await controller.submit_token_transfer(state, message.text or ""))


@router.callback_query(F.data.startswith(IntentKind.SEND_SOL.confirm_callback))
async def handle_confirm_sol(callback: CallbackQuery, state: FSMContext, controller: FlowController) -> None:
    await confirm_action(callback, state, controller, IntentKind.SEND_SOL)


@router.callback_query(F.data.startswith(IntentKind.SEND_SOL.cancel_callback))
async def handle_cancel_sol(callback: CallbackQuery, state: FSMContext, controller: FlowController) -> None:
    await cancel_action(callback, state, controller, IntentKind.SEND_SOL)


@router.callback_query(F.data.startswith(IntentKind.SEND_TOKEN.confirm_callback))
async def handle_confirm_token(callback: CallbackQuery, state: FSMContext, controller: FlowController) -> None:
    await confirm_action(callback, state, controller, IntentKind.SEND_TOKEN)


@router.callback_query(F.data.startswith(IntentKind.SEND_TOKEN.cancel_callback))
async def handle_cancel_token(callback: CallbackQuery, state: FSMContext, controller: FlowController) -> None:
    await cancel_action(callback, state, controller, IntentKind.SEND_TOKEN)
