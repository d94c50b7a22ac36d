"""Per-chat locking.

Events of one chat are handled one at a time so that a confirmation and a
cancel (or two confirmations) for the same pending action never interleave.
Different chats never wait on each other.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: chat_id -> asyncio.Lock
_chat_locks: dict[int, asyncio.Lock] = {}
# ChatLock holders and waiters per chat; a chat's lock is dropped at zero
_chat_lock_users: dict[int, int] = {}
_registry_lock = asyncio.Lock()


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


async def get_chat_lock(chat_id: int) -> asyncio.Lock:
    """Get or create the lock for a chat.

    Args:
        chat_id: Telegram chat ID

    Returns:
        asyncio.Lock for the chat
    """
    async with _registry_lock:
        if chat_id not in _chat_locks:
            _chat_locks[chat_id] = asyncio.Lock()
        return _chat_locks[chat_id]


async def _checkout_chat_lock(chat_id: int) -> asyncio.Lock:
    async with _registry_lock:
        _chat_lock_users[chat_id] = _chat_lock_users.get(chat_id, 0) + 1
        return _chat_locks.setdefault(chat_id, asyncio.Lock())


def _return_chat_lock(chat_id: int) -> None:
    users = _chat_lock_users.get(chat_id, 0) - 1
    if users > 0:
        _chat_lock_users[chat_id] = users
        return
    _chat_lock_users.pop(chat_id, None)
    lock = _chat_locks.get(chat_id)
    if lock is not None and not lock.locked():
        del _chat_locks[chat_id]


class ChatLock:
    """Context manager for exclusive handling of one chat's events.

    Example:
        async with ChatLock(chat_id, operation="confirm_swap"):
            await controller.confirm(...)
    """

    def __init__(
        self,
        chat_id: int,
        timeout: Optional[float] = 30.0,
        operation: str = "chat_event",
    ):
        """Initialize the lock.

        Args:
            chat_id: Telegram chat ID
            timeout: Maximum time to wait for lock (None = wait forever)
            operation: Description of the operation for logging
        """
        self.chat_id = chat_id
        self.timeout = timeout
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    async def __aenter__(self) -> "ChatLock":
        self._lock = await _checkout_chat_lock(self.chat_id)

        try:
            if self.timeout:
                self._acquired = await asyncio.wait_for(
                    self._lock.acquire(),
                    timeout=self.timeout,
                )
            else:
                await self._lock.acquire()
                self._acquired = True
        except asyncio.TimeoutError:
            _return_chat_lock(self.chat_id)
            logger.warning(
                f"Lock timeout for chat {self.chat_id} after {self.timeout}s: {self.operation}"
            )
            raise LockTimeoutError(
                f"Could not acquire lock for chat {self.chat_id} within {self.timeout}s"
            )
        except asyncio.CancelledError:
            _return_chat_lock(self.chat_id)
            raise

        logger.debug(f"Lock acquired for chat {self.chat_id}: {self.operation}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._acquired and self._lock:
            self._lock.release()
            self._acquired = False
            logger.debug(f"Lock released for chat {self.chat_id}: {self.operation}")
            _return_chat_lock(self.chat_id)
        return False


@asynccontextmanager
async def chat_lock(
    chat_id: int,
    timeout: Optional[float] = 30.0,
    operation: str = "chat_event",
):
    """Functional form of ChatLock.

    Example:
        async with chat_lock(chat_id, operation="submit_swap"):
            ...
    """
    async with ChatLock(chat_id, timeout=timeout, operation=operation):
        yield


def is_chat_locked(chat_id: int) -> bool:
    """Whether an event of this chat is currently being handled."""
    lock = _chat_locks.get(chat_id)
    return lock is not None and lock.locked()


def clear_chat_locks() -> None:
    """Clear all chat locks (useful for testing)."""
    _chat_locks.clear()
    _chat_lock_users.clear()
