"""Pending actions captured at proposal time and executed on confirmation.

Intents are stored in the FSM data dict, so they serialize to plain dicts.
Each carries a short ``action_id`` that is echoed in the confirm/cancel
buttons; a button from a superseded prompt no longer matches.
"""

import secrets
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, ClassVar, Optional, Union

from solbot.errors import InvalidAddress, InvalidInputFormat
from solbot.routing.base import Quote, TokenInfo

PENDING_KEY = "pending"

# Largest whole-unit amount a u64 transfer can carry
MAX_AMOUNT = Decimal(2**64 - 1)


class IntentKind(str, Enum):
    """Fund-moving action kinds; values double as callback suffixes."""

    SEND_SOL = "send_sol"
    SEND_TOKEN = "send_token"
    SWAP = "swap"

    @property
    def confirm_callback(self) -> str:
        return f"confirm_{self.value}"

    @property
    def cancel_callback(self) -> str:
        return f"cancel_{self.value}"


def new_action_id() -> str:
    return secrets.token_hex(4)


@dataclass
class TransferIntent:
    """Send SOL to a recipient."""

    recipient: str
    amount: Decimal
    action_id: str = field(default_factory=new_action_id)

    kind: ClassVar[IntentKind] = IntentKind.SEND_SOL

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "recipient": self.recipient,
            "amount": str(self.amount),
            "action_id": self.action_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TransferIntent":
        return cls(
            recipient=data["recipient"],
            amount=Decimal(data["amount"]),
            action_id=data["action_id"],
        )


@dataclass
class TokenTransferIntent:
    """Send an SPL token to a recipient."""

    recipient: str
    mint: str
    amount: Decimal
    action_id: str = field(default_factory=new_action_id)

    kind: ClassVar[IntentKind] = IntentKind.SEND_TOKEN

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "recipient": self.recipient,
            "mint": self.mint,
            "amount": str(self.amount),
            "action_id": self.action_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenTransferIntent":
        return cls(
            recipient=data["recipient"],
            mint=data["mint"],
            amount=Decimal(data["amount"]),
            action_id=data["action_id"],
        )


@dataclass
class SwapIntent:
    """Swap at a previously fetched quote.

    ``quote_response`` is the provider's raw quote; confirmation builds the
    swap from it instead of asking for a fresh one.
    """

    from_token: TokenInfo
    to_token: TokenInfo
    amount: Decimal
    in_amount: int
    expected_output: Decimal
    quote_response: dict
    action_id: str = field(default_factory=new_action_id)

    kind: ClassVar[IntentKind] = IntentKind.SWAP

    @classmethod
    def from_quote(cls, quote: Quote) -> "SwapIntent":
        return cls(
            from_token=quote.from_token,
            to_token=quote.to_token,
            amount=quote.amount,
            in_amount=quote.in_amount,
            expected_output=quote.expected_output,
            quote_response=quote.quote_response,
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "from_token": self.from_token.to_dict(),
            "to_token": self.to_token.to_dict(),
            "amount": str(self.amount),
            "in_amount": self.in_amount,
            "expected_output": str(self.expected_output),
            "quote_response": self.quote_response,
            "action_id": self.action_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SwapIntent":
        return cls(
            from_token=TokenInfo.from_dict(data["from_token"]),
            to_token=TokenInfo.from_dict(data["to_token"]),
            amount=Decimal(data["amount"]),
            in_amount=int(data["in_amount"]),
            expected_output=Decimal(data["expected_output"]),
            quote_response=data["quote_response"],
            action_id=data["action_id"],
        )


PendingAction = Union[TransferIntent, TokenTransferIntent, SwapIntent]

_INTENT_TYPES = {
    IntentKind.SEND_SOL: TransferIntent,
    IntentKind.SEND_TOKEN: TokenTransferIntent,
    IntentKind.SWAP: SwapIntent,
}


def load_pending(data: dict) -> Optional[PendingAction]:
    """Read the pending action out of FSM data, if any."""
    raw = data.get(PENDING_KEY)
    if not raw:
        return None
    return _INTENT_TYPES[IntentKind(raw["kind"])].from_dict(raw)


# Parsing of free-text input

def parse_amount(text: str) -> Decimal:
    """Parse a positive, finite decimal amount that fits a u64 transfer.

    Raises:
        InvalidInputFormat: If the text is not a positive number
    """
    try:
        amount = Decimal(text)
        valid = amount.is_finite() and amount > 0
    except ArithmeticError:
        valid = False

    if not valid:
        raise InvalidInputFormat("Invalid amount. Please enter a positive number.")
    if amount > MAX_AMOUNT:
        raise InvalidInputFormat("Amount is too large.")
    return amount


def _split_fields(text: str, expected: int, usage: str) -> list[str]:
    parts = text.split()
    if len(parts) != expected:
        raise InvalidInputFormat(f"Invalid format. Please use: {usage}")
    return parts


def parse_transfer(text: str, is_valid_address: Callable[[str], bool]) -> TransferIntent:
    """Parse ``address amount``."""
    recipient, amount_text = _split_fields(text, 2, "address amount")
    amount = parse_amount(amount_text)

    if not is_valid_address(recipient):
        raise InvalidAddress("Invalid Solana address. Please check and try again.")

    return TransferIntent(recipient=recipient, amount=amount)


def parse_token_transfer(text: str, is_valid_address: Callable[[str], bool]) -> TokenTransferIntent:
    """Parse ``address token_mint amount``."""
    recipient, mint, amount_text = _split_fields(text, 3, "address token_mint amount")
    amount = parse_amount(amount_text)

    if not is_valid_address(recipient) or not is_valid_address(mint):
        raise InvalidAddress("Invalid address or token mint. Please check and try again.")

    return TokenTransferIntent(recipient=recipient, mint=mint, amount=amount)


def parse_swap_request(text: str) -> tuple[str, str, Decimal]:
    """Parse ``from_token to_token amount`` into upper-case symbols and an amount."""
    from_symbol, to_symbol, amount_text = _split_fields(text, 3, "from_token to_token amount")
    amount = parse_amount(amount_text)

    if from_symbol.upper() == to_symbol.upper():
        raise InvalidInputFormat("Please choose two different tokens.")

    return from_symbol.upper(), to_symbol.upper(), amount
