"""Bot handlers module."""

from aiogram import Router

from solbot.bot.handlers import market, send, start, swap, wallet
from solbot.bot.handlers.errors import handle_error


def setup_routers() -> Router:
    """Create and configure all routers."""
    main_router = Router()

    # Flow-input handlers skip text starting with "/", so commands work in any state
    main_router.include_router(start.router)
    main_router.include_router(market.router)
    main_router.include_router(wallet.router)
    main_router.include_router(send.router)
    main_router.include_router(swap.router)

    main_router.errors.register(handle_error)

    return main_router
