"""Main entry point - runs the bot and session housekeeping."""

import asyncio
import logging
import signal

from dotenv import load_dotenv

from solbot.bot.bot import configure_logging, create_bot
from solbot.config import get_settings
from solbot.ledger.database import close_db, init_db
from solbot.session.storage import TTLMemoryStorage

logger = logging.getLogger(__name__)


class Application:
    """Main application: Telegram polling plus expiry of idle sessions."""

    def __init__(self):
        self.settings = get_settings()
        self.storage = TTLMemoryStorage(ttl_seconds=self.settings.session_ttl_seconds)
        self.bot = None
        self.dp = None
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        configure_logging(self.settings.debug)

        logger.info("Starting Solana wallet bot...")
        logger.info(f"Environment: {self.settings.environment}")

        await init_db()
        logger.info("Database initialized")

        tasks = []

        if self.settings.telegram_bot_token:
            self.bot, self.dp = create_bot(storage=self.storage)
            tasks.append(asyncio.create_task(self._run_bot()))
            logger.info("Bot task created")
        else:
            logger.warning("TELEGRAM_BOT_TOKEN not set - bot disabled")

        tasks.append(asyncio.create_task(self._purge_sessions()))

        # Wait for shutdown signal
        await self._shutdown_event.wait()

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self._cleanup()

    async def _run_bot(self):
        """Run the Telegram bot."""
        try:
            await self.bot.delete_webhook(drop_pending_updates=True)
            logger.info("Starting bot polling...")
            await self.dp.start_polling(self.bot, handle_signals=False)
        except asyncio.CancelledError:
            logger.info("Bot polling cancelled")
        except Exception as e:
            logger.error(f"Bot error: {e}")
            self.shutdown()
            raise

    async def _purge_sessions(self):
        """Drop expired sessions so idle chats do not accumulate."""
        interval = max(self.settings.session_ttl_seconds / 4, 1)
        try:
            while True:
                await asyncio.sleep(interval)
                self.storage.purge_expired()
        except asyncio.CancelledError:
            logger.info("Session purge cancelled")

    async def _cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up...")

        if self.bot:
            await self.bot.session.close()

        await self.storage.close()
        await close_db()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    load_dotenv()
    app = Application()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
