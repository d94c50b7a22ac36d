"""Wallet import, balance and history handlers."""

import logging

from aiogram import Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

from solbot.bot.handlers.common import FLOW_TEXT, delete_quietly, send_reply
from solbot.chain.gateway import ChainGateway
from solbot.errors import GatewayFailure, NoWalletBound
from solbot.ledger.repository import LedgerRepository
from solbot.routing.prices import PriceProvider
from solbot.session.controller import FlowController, format_amount
from solbot.session.states import FlowStates

logger = logging.getLogger(__name__)

router = Router()


@router.message(Command("importwallet"))
async def cmd_import_wallet(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Start the wallet import flow."""
    await send_reply(message, await controller.start_import(state))


@router.message(FlowStates.awaiting_secret, FLOW_TEXT)
async def handle_secret(message: Message, state: FSMContext, controller: FlowController) -> None:
    """Receive a private key or seed phrase. The message is always deleted."""
    try:
        reply = await controller.submit_secret(state, message.chat.id, message.text or "")
    finally:
        await delete_quietly(message)
    await send_reply(message, reply)


@router.message(Command("balance"))
async def cmd_balance(
    message: Message,
    controller: FlowController,
    chain: ChainGateway,
    prices: PriceProvider,
) -> None:
    """Show SOL and token balances of the bound wallet."""
    try:
        address = await controller.wallet_address(message.chat.id)
    except NoWalletBound as e:
        await message.answer(e.message)
        return

    try:
        sol_balance = await chain.get_sol_balance(address)
        tokens = await chain.get_token_accounts(address)
    except GatewayFailure as e:
        await message.answer(f"❌ Error fetching balance: {e.message}")
        return

    sol_line = f"SOL: {format_amount(sol_balance)}"
    try:
        sol_price = await prices.get_sol_price()
        sol_line += f" (~${sol_balance * sol_price:,.2f})"
    except GatewayFailure as e:
        logger.info(f"Balance shown without USD value: {e.message}")

    lines = ["💰 Wallet Balance\n", f"Address: {address}\n", sol_line]
    if tokens:
        lines.append("\nTokens:")
        for token in tokens:
            lines.append(f"  {token.mint}: {format_amount(token.amount)}")

    await message.answer("\n".join(lines))


@router.message(Command("history"))
async def cmd_history(message: Message, controller: FlowController) -> None:
    """Show the last transactions made through the bot."""
    async with controller.db() as session:
        records = await LedgerRepository(session).get_transactions(message.chat.id, limit=10)

    if not records:
        await message.answer("No transactions yet.")
        return

    lines = ["📊 Recent Transactions\n"]
    for record in records:
        date_str = record.created_at.strftime("%m/%d %H:%M") if record.created_at else ""
        line = f"{date_str} {record.kind.upper()} {format_amount(record.amount)} {record.token}"
        if record.counterparty_address:
            line += f" → {record.counterparty_address}"
        lines.append(line)
        lines.append(f"  {controller.explorer_link(record.signature)}")

    await message.answer("\n".join(lines))
