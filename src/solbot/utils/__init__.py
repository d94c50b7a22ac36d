"""Utility modules."""

from solbot.utils.locks import ChatLock, LockTimeoutError, chat_lock, clear_chat_locks, get_chat_lock

__all__ = [
    "ChatLock",
    "LockTimeoutError",
    "chat_lock",
    "clear_chat_locks",
    "get_chat_lock",
]
