"""Token swap handlers."""

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from solbot.bot.handlers.common import FLOW_TEXT, cancel_action, confirm_action, send_reply
from solbot.session.controller import FlowController
from solbot.session.intents import IntentKind
from solbot.session.states import FlowStates

router = Router()


@router.message(Command("swap"))
async def cmd_swap(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Start the swap flow."""
    await send_reply(message, await controller.begin_swap(state, message.chat.id))


@router.message(FlowStates.swapping, FLOW_TEXT)
async def handle_swap_input(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Receive ``from_token to_token amount`` and show a quote."""
    await message.bot.send_chat_action(message.chat.id, "typing")
    await send_reply(message, await controller.submit_swap(state, message.text or ""))


@router.callback_query(F.data.startswith(IntentKind.SWAP.confirm_callback))
async def handle_confirm_swap(callback: CallbackQuery, state: FSMContext, controller: FlowController) -> None:
    await confirm_action(callback, state, controller, IntentKind.SWAP)


@router.callback_query(F.data.startswith(IntentKind.SWAP.cancel_callback))
async def handle_cancel_swap(callback: CallbackQuery, state: FSMContext, controller: FlowController) -> None:
    await cancel_action(callback, state, controller, IntentKind.SWAP)
