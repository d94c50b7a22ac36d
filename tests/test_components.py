"""Component tests: chat locks, middleware, config and error handling."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from solbot.bot.handlers.errors import BUSY_TEXT, GENERIC_ERROR_TEXT, handle_error
from solbot.bot.middlewares import ChatSerialMiddleware
from solbot.errors import NoWalletBound
from solbot.utils import locks
from solbot.utils.locks import (
    ChatLock,
    LockTimeoutError,
    chat_lock,
    clear_chat_locks,
    get_chat_lock,
    is_chat_locked,
)


class TestChatLocks:
    """Tests for the per-chat locks."""

    @pytest.mark.asyncio
    async def test_get_chat_lock_reuses_lock(self):
        """Test that get_chat_lock returns the same lock for a chat."""
        lock1 = await get_chat_lock(1)
        lock2 = await get_chat_lock(1)

        assert lock1 is lock2

    @pytest.mark.asyncio
    async def test_different_chats_get_different_locks(self):
        """Test that different chats get different locks."""
        lock1 = await get_chat_lock(1)
        lock2 = await get_chat_lock(2)

        assert lock1 is not lock2

    @pytest.mark.asyncio
    async def test_chat_lock_context_manager(self):
        """Test ChatLock as context manager."""
        async with ChatLock(100, operation="test"):
            assert is_chat_locked(100)

        assert not is_chat_locked(100)

    @pytest.mark.asyncio
    async def test_chat_lock_prevents_concurrent_access(self):
        """Test that events of one chat run one after another."""
        results = []

        async def task(name, delay):
            async with ChatLock(200, timeout=10.0, operation=f"task_{name}"):
                results.append(f"{name}_start")
                await asyncio.sleep(delay)
                results.append(f"{name}_end")

        await asyncio.gather(task("A", 0.05), task("B", 0.05))

        assert results in [
            ["A_start", "A_end", "B_start", "B_end"],
            ["B_start", "B_end", "A_start", "A_end"],
        ]

    @pytest.mark.asyncio
    async def test_other_chats_are_not_blocked(self):
        """Test that a held lock does not delay another chat."""
        async with ChatLock(1):
            async with ChatLock(2, timeout=0.1):
                assert is_chat_locked(2)

    @pytest.mark.asyncio
    async def test_lock_timeout_raises_error(self):
        """Test that lock timeout raises LockTimeoutError."""

        async def hold_lock():
            async with ChatLock(300, timeout=5.0):
                await asyncio.sleep(0.5)

        hold_task = asyncio.create_task(hold_lock())
        await asyncio.sleep(0.05)

        with pytest.raises(LockTimeoutError):
            async with ChatLock(300, timeout=0.1):
                pass

        await hold_task

    @pytest.mark.asyncio
    async def test_idle_chat_locks_are_dropped(self):
        """Test that a chat's lock is forgotten once nobody holds or waits on it."""

        async def hold(delay):
            async with ChatLock(500, timeout=5.0):
                await asyncio.sleep(delay)

        await asyncio.gather(hold(0.05), hold(0.05))
        assert 500 not in locks._chat_locks

        with pytest.raises(LockTimeoutError):
            async with ChatLock(600):
                async with ChatLock(600, timeout=0.05):
                    pass
        assert 600 not in locks._chat_locks
        assert 600 not in locks._chat_lock_users

    @pytest.mark.asyncio
    async def test_functional_context_manager(self):
        """Test chat_lock functional context manager."""
        async with chat_lock(400, operation="test"):
            assert is_chat_locked(400)

        assert not is_chat_locked(400)

    @pytest.mark.asyncio
    async def test_clear_chat_locks(self):
        """Test that clear_chat_locks forgets all locks."""
        old = await get_chat_lock(1)

        clear_chat_locks()

        assert await get_chat_lock(1) is not old


class TestChatSerialMiddleware:
    """Tests for the dispatcher middleware."""

    @pytest.mark.asyncio
    async def test_serializes_same_chat(self):
        middleware = ChatSerialMiddleware(timeout=5.0)
        results = []

        async def handler(event, data):
            results.append(f"{event}_start")
            await asyncio.sleep(0.05)
            results.append(f"{event}_end")
            return event

        data = {"event_chat": SimpleNamespace(id=7)}
        returned = await asyncio.gather(
            middleware(handler, "A", dict(data)),
            middleware(handler, "B", dict(data)),
        )

        assert returned == ["A", "B"]
        assert results == ["A_start", "A_end", "B_start", "B_end"]

    @pytest.mark.asyncio
    async def test_different_chats_interleave(self):
        middleware = ChatSerialMiddleware(timeout=5.0)
        results = []

        async def handler(event, data):
            results.append(f"{event}_start")
            await asyncio.sleep(0.05)
            results.append(f"{event}_end")

        await asyncio.gather(
            middleware(handler, "A", {"event_chat": SimpleNamespace(id=1)}),
            middleware(handler, "B", {"event_chat": SimpleNamespace(id=2)}),
        )

        assert results[:2] == ["A_start", "B_start"]

    @pytest.mark.asyncio
    async def test_event_without_chat_passes_through(self):
        middleware = ChatSerialMiddleware()
        handler = AsyncMock(return_value="ok")

        assert await middleware(handler, "event", {}) == "ok"
        handler.assert_awaited_once()


class TestErrorHandler:
    """Tests for the last-resort error handler."""

    @pytest.mark.asyncio
    async def test_message_error_gets_generic_reply(self):
        message = MagicMock()
        message.answer = AsyncMock()
        event = SimpleNamespace(
            update=SimpleNamespace(update_id=1, message=message, callback_query=None),
            exception=RuntimeError("boom"),
        )

        assert await handle_error(event) is True
        message.answer.assert_awaited_once_with(GENERIC_ERROR_TEXT)

    @pytest.mark.asyncio
    async def test_lock_timeout_on_callback(self):
        callback = MagicMock()
        callback.answer = AsyncMock()
        event = SimpleNamespace(
            update=SimpleNamespace(update_id=2, message=None, callback_query=callback),
            exception=LockTimeoutError("busy"),
        )

        await handle_error(event)
        callback.answer.assert_awaited_once_with(BUSY_TEXT, show_alert=True)

    @pytest.mark.asyncio
    async def test_bot_error_reports_its_message(self):
        message = MagicMock()
        message.answer = AsyncMock()
        event = SimpleNamespace(
            update=SimpleNamespace(update_id=3, message=message, callback_query=None),
            exception=NoWalletBound(),
        )

        await handle_error(event)
        message.answer.assert_awaited_once_with(NoWalletBound().message)


class TestConfig:
    """Tests for configuration module."""

    def test_get_settings(self):
        """Test getting settings instance."""
        from solbot.config import get_settings

        settings = get_settings()

        assert settings.environment == "test"
        assert settings.encryption_key == "test-encryption-key"
        assert settings.session_ttl_seconds > 0

    def test_settings_safe_dict_redacts_secrets(self):
        """Test that safe_dict never exposes secrets."""
        from solbot.config import get_settings

        safe = get_settings().get_safe_dict()

        assert isinstance(safe, dict)
        assert "test-encryption-key" not in str(safe)

    def test_admin_ids(self):
        from solbot.config import Settings

        assert Settings(admin_user_ids="1, 2,").admin_ids == [1, 2]
        assert Settings(admin_user_ids="").admin_ids == []
