"""Telegram bot: routers, middlewares and keyboards."""
