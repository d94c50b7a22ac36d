"""Start, help and cancel handlers."""

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

from solbot.bot.handlers.common import send_reply
from solbot.errors import NoWalletBound
from solbot.session.controller import FlowController

router = Router()

COMMANDS_TEXT = """Available commands:
  /importwallet - Import an existing wallet
  /balance      - Check your wallet balance
  /send         - Send SOL or tokens
  /swap         - Swap tokens via Jupiter
  /price        - Get token prices (e.g. /price SOL BONK)
  /history      - Your recent transactions
  /traders      - List tracked traders
  /cancel       - Cancel the current operation
  /help         - Show this help message"""


@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Handle /start command - show welcome and the connected wallet."""
    await state.clear()

    try:
        address = await controller.wallet_address(message.chat.id)
        wallet_line = f"Your connected wallet: {address}"
    except NoWalletBound:
        wallet_line = "You have not connected a wallet yet. Use /importwallet to get started."

    first_name = message.from_user.first_name if message.from_user else None
    welcome_text = f"""Welcome to the Solana Wallet Bot, {first_name or "there"}!

Manage your Solana wallet right from Telegram: check balances, send SOL and
SPL tokens, and swap tokens at the best route.

{wallet_line}

{COMMANDS_TEXT}"""

    await message.answer(welcome_text)


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    """Handle /help command."""
    help_text = f"""Solana Wallet Bot

{COMMANDS_TEXT}

Sending:
  /send, pick SOL or Token, then enter
  address amount  or  address token_mint amount

Swapping:
  /swap, then enter from_token to_token amount
  Example: SOL USDC 0.1

Every transfer and swap asks for confirmation before it is submitted."""

    await message.answer(help_text)


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Handle /cancel in any state."""
    await send_reply(message, await controller.cancel(state))
