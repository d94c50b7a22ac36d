"""Swap routing and price lookups."""

from solbot.routing.base import Quote, SwapProvider, SwapTransaction, TokenInfo
from solbot.routing.jupiter import KNOWN_TOKENS, JupiterProvider, create_jupiter_provider
from solbot.routing.prices import PriceProvider, create_price_provider

__all__ = [
    "Quote",
    "SwapProvider",
    "SwapTransaction",
    "TokenInfo",
    "KNOWN_TOKENS",
    "JupiterProvider",
    "create_jupiter_provider",
    "PriceProvider",
    "create_price_provider",
]
