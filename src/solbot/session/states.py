"""FSM states for the multi-step chat flows."""

from aiogram.fsm.state import State, StatesGroup


class FlowStates(StatesGroup):
    """Per-chat flow state. No state (None) means idle."""

    awaiting_secret = State()
    sending_native = State()
    sending_token = State()
    swapping = State()
