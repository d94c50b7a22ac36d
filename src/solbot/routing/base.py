"""Abstract routing interface for swap providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class TokenInfo:
    """A fungible token on Solana."""

    symbol: str
    mint: str
    decimals: int
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "mint": self.mint,
            "decimals": self.decimals,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenInfo":
        return cls(
            symbol=data["symbol"],
            mint=data["mint"],
            decimals=int(data["decimals"]),
            name=data.get("name"),
        )


@dataclass
class Quote:
    """A swap quote from a routing provider."""

    provider: str
    from_token: TokenInfo
    to_token: TokenInfo
    amount: Decimal  # human units of from_token
    in_amount: int  # smallest units of from_token
    out_amount: int  # smallest units of to_token
    price_impact_pct: Decimal = Decimal("0")
    slippage_bps: int = 50
    quote_response: dict = field(default_factory=dict)  # raw payload, needed to build the swap

    @property
    def expected_output(self) -> Decimal:
        """Output amount in human units of to_token."""
        return Decimal(self.out_amount) / (Decimal(10) ** self.to_token.decimals)


@dataclass
class SwapTransaction:
    """An unsigned swap transaction returned by a provider."""

    payload: str  # base64-encoded versioned transaction
    last_valid_block_height: Optional[int] = None


class SwapProvider(ABC):
    """Abstract base class for swap routing providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @abstractmethod
    async def find_token_by_symbol(self, symbol: str) -> Optional[TokenInfo]:
        """Resolve a ticker symbol, or None if unknown."""
        pass

    @abstractmethod
    async def get_quote(self, from_token: TokenInfo, to_token: TokenInfo, amount: Decimal) -> Quote:
        """
        Get a swap quote.

        Args:
            from_token: Token being sold
            to_token: Token being bought
            amount: Amount of from_token in human units

        Raises:
            GatewayFailure: If no quote could be obtained
        """
        pass

    @abstractmethod
    async def build_swap_transaction(self, quote_response: dict, user_address: str) -> SwapTransaction:
        """
        Build the unsigned transaction executing a previously obtained quote.

        Raises:
            GatewayFailure: If the provider refuses or returns garbage
        """
        pass
