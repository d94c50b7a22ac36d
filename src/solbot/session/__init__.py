"""Per-chat conversation state and the flows that drive it."""

from solbot.session.controller import FlowController, Reply
from solbot.session.intents import (
    IntentKind,
    SwapIntent,
    TokenTransferIntent,
    TransferIntent,
    load_pending,
)
from solbot.session.states import FlowStates
from solbot.session.storage import TTLMemoryStorage

__all__ = [
    "FlowController",
    "Reply",
    "FlowStates",
    "TTLMemoryStorage",
    "IntentKind",
    "TransferIntent",
    "TokenTransferIntent",
    "SwapIntent",
    "load_pending",
]
