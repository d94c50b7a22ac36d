"""In-memory FSM storage with idle expiry.

Same contract as aiogram's MemoryStorage, but a chat's state and data are
dropped once nothing has been written for ``ttl_seconds``. Flows are not
durable: a restart loses them and the user re-issues the command.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from aiogram.fsm.state import State
from aiogram.fsm.storage.base import BaseStorage, StateType, StorageKey

logger = logging.getLogger(__name__)


@dataclass
class _Record:
    state: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
    touched_at: float = 0.0


class TTLMemoryStorage(BaseStorage):
    """FSM storage that forgets idle chats."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = 900,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the storage.

        Args:
            ttl_seconds: Idle lifetime of a record (None = never expire)
            clock: Monotonic time source
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._records: dict[StorageKey, _Record] = {}

    @property
    def size(self) -> int:
        """Number of chats with live or not yet purged records."""
        return len(self._records)

    def _is_expired(self, record: _Record) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - record.touched_at > self.ttl_seconds

    def _get(self, key: StorageKey) -> Optional[_Record]:
        record = self._records.get(key)
        if record is None:
            return None
        if self._is_expired(record):
            logger.debug(f"Session expired for chat {key.chat_id}")
            del self._records[key]
            return None
        return record

    def _touch(self, key: StorageKey) -> _Record:
        record = self._get(key) or _Record()
        record.touched_at = self._clock()
        self._records[key] = record
        return record

    def _drop_if_empty(self, key: StorageKey, record: _Record) -> None:
        if record.state is None and not record.data:
            self._records.pop(key, None)

    async def set_state(self, key: StorageKey, state: StateType = None) -> None:
        record = self._touch(key)
        record.state = state.state if isinstance(state, State) else state
        self._drop_if_empty(key, record)

    async def get_state(self, key: StorageKey) -> Optional[str]:
        record = self._get(key)
        return record.state if record else None

    async def set_data(self, key: StorageKey, data: Mapping[str, Any]) -> None:
        record = self._touch(key)
        record.data = dict(data)
        self._drop_if_empty(key, record)

    async def get_data(self, key: StorageKey) -> dict[str, Any]:
        record = self._get(key)
        return dict(record.data) if record else {}

    def purge_expired(self) -> int:
        """Drop every expired record. Returns how many were removed."""
        expired = [key for key, record in self._records.items() if self._is_expired(record)]
        for key in expired:
            del self._records[key]
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    async def close(self) -> None:
        self._records.clear()
