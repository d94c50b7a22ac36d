"""Bot initialization and runner."""

import asyncio
import logging
from typing import Optional

from aiogram import Bot, Dispatcher

from solbot.bot.handlers import setup_routers
from solbot.bot.middlewares import ChatSerialMiddleware
from solbot.chain.gateway import ChainGateway, create_chain_gateway
from solbot.config import get_settings
from solbot.crypto import get_vault
from solbot.ledger.database import close_db, init_db
from solbot.routing.base import SwapProvider
from solbot.routing.jupiter import create_jupiter_provider
from solbot.routing.prices import PriceProvider, create_price_provider
from solbot.session.controller import FlowController
from solbot.session.storage import TTLMemoryStorage

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    """Configure logging - reduce noise from libraries."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiogram").setLevel(logging.INFO)


def create_dispatcher(
    controller: FlowController,
    chain: ChainGateway,
    prices: PriceProvider,
    storage: Optional[TTLMemoryStorage] = None,
    lock_timeout: Optional[float] = 180.0,
) -> Dispatcher:
    """Create a dispatcher with routers, middlewares and injected services."""
    dp = Dispatcher(
        storage=storage if storage is not None else TTLMemoryStorage(),
        controller=controller,
        chain=chain,
        prices=prices,
    )

    serial = ChatSerialMiddleware(timeout=lock_timeout)
    dp.message.outer_middleware(serial)
    dp.callback_query.outer_middleware(serial)

    dp.include_router(setup_routers())
    return dp


def create_bot(
    swaps: Optional[SwapProvider] = None,
    storage: Optional[TTLMemoryStorage] = None,
) -> tuple[Bot, Dispatcher]:
    """Create bot and dispatcher instances."""
    settings = get_settings()

    if not settings.telegram_bot_token:
        raise ValueError("TELEGRAM_BOT_TOKEN is not set")

    # No default parse_mode - replies are plain text
    bot = Bot(token=settings.telegram_bot_token)

    chain = create_chain_gateway()
    controller = FlowController(
        vault=get_vault(),
        chain=chain,
        swaps=swaps or create_jupiter_provider(),
        explorer_tx_url=settings.explorer_tx_url,
    )
    dp = create_dispatcher(
        controller=controller,
        chain=chain,
        prices=create_price_provider(),
        storage=storage if storage is not None else TTLMemoryStorage(settings.session_ttl_seconds),
        lock_timeout=settings.chat_lock_timeout_seconds,
    )

    return bot, dp


async def run_bot() -> None:
    """Run the bot in polling mode."""
    settings = get_settings()
    configure_logging(settings.debug)

    logger.info("Starting Solana wallet bot...")
    logger.info(f"Settings: {settings.get_safe_dict()}")

    await init_db()
    logger.info("Database initialized")

    bot, dp = create_bot()

    try:
        # Delete webhook if any and start polling
        await bot.delete_webhook(drop_pending_updates=True)
        logger.info("Starting polling...")
        await dp.start_polling(bot)
    finally:
        await bot.session.close()
        await close_db()


def main() -> None:
    """Entry point for bot-only mode."""
    asyncio.run(run_bot())


if __name__ == "__main__":
    main()
