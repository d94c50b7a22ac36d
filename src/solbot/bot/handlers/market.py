"""Price and trader handlers."""

import logging
from decimal import Decimal

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from solbot.chain.gateway import is_valid_address
from solbot.config import get_settings
from solbot.errors import GatewayFailure
from solbot.ledger.repository import LedgerRepository
from solbot.routing.prices import PriceProvider
from solbot.session.controller import FlowController

logger = logging.getLogger(__name__)

router = Router()


def format_usd(price: Decimal) -> str:
    if price >= 1:
        return f"{price:,.2f}"
    return f"{price:.8f}".rstrip("0").rstrip(".")


def can_add_traders(user_id: int) -> bool:
    """Anyone may add traders unless ADMIN_USER_IDS restricts it."""
    admin_ids = get_settings().admin_ids
    return not admin_ids or user_id in admin_ids


@router.message(Command("price"))
async def cmd_price(message: Message, command: CommandObject, prices: PriceProvider) -> None:
    """Handle /price [SYMBOL ...]; defaults to SOL."""
    symbols = [s.upper() for s in (command.args or "SOL").split()]

    try:
        result = await prices.get_prices(symbols)
    except GatewayFailure as e:
        await message.answer(f"❌ Error fetching prices: {e.message}")
        return

    lines = ["💲 Current Prices\n"]
    for symbol in symbols:
        price = result.get(symbol)
        if price is None:
            lines.append(f"{symbol}: not available")
        else:
            lines.append(f"{symbol}: ${format_usd(price)}")
    await message.answer("\n".join(lines))


@router.message(Command("traders"))
async def cmd_traders(message: Message, controller: FlowController) -> None:
    """List the traders recorded so far."""
    async with controller.db() as session:
        traders = await LedgerRepository(session).list_traders()

    if not traders:
        await message.answer("No traders recorded yet. Add one with /addtrader")
        return

    lines = ["📊 Traders\n"]
    for trader in traders:
        lines.append(trader.name)
        lines.append(f"Address: {trader.public_address}")
        if trader.description:
            lines.append(f"Description: {trader.description}")
        performance = f"Performance: {trader.successful_trades}/{trader.total_trades} trades"
        if trader.total_trades > 0:
            performance += f" ({trader.profit_percentage:.2f}% profit)"
        lines.append(performance)
        lines.append("")

    await message.answer("\n".join(lines).rstrip())


@router.message(Command("addtrader"))
async def cmd_add_trader(message: Message, command: CommandObject, controller: FlowController) -> None:
    """Handle /addtrader <address> <name> [description]."""
    if not message.from_user or not can_add_traders(message.from_user.id):
        await message.answer("You are not allowed to add traders.")
        return

    args = (command.args or "").split(maxsplit=2)
    if len(args) < 2:
        await message.answer("Please use the format: /addtrader <address> <name> [description]")
        return

    address, name = args[0], args[1]
    description = args[2] if len(args) > 2 else None

    if not is_valid_address(address):
        await message.answer("Invalid Solana address. Please check and try again.")
        return

    try:
        async with controller.db() as session:
            trader = await LedgerRepository(session).add_trader(
                public_address=address,
                name=name,
                description=description,
                added_by=message.from_user.id,
            )
    except ValueError as e:
        await message.answer(str(e))
        return

    logger.info(f"Trader {address} added by {message.from_user.id}")
    lines = ["✅ Trader added successfully!\n", f"Name: {trader.name}", f"Address: {trader.public_address}"]
    if trader.description:
        lines.append(f"Description: {trader.description}")
    await message.answer("\n".join(lines))
