"""Telegram bot for managing a Solana wallet."""

__version__ = "0.1.0"
