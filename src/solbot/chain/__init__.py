"""Solana chain access."""

from solbot.chain.gateway import (
    ChainGateway,
    TokenBalance,
    create_chain_gateway,
    is_valid_address,
    to_smallest_units,
)

__all__ = [
    "ChainGateway",
    "create_chain_gateway",
    "TokenBalance",
    "is_valid_address",
    "to_smallest_units",
]
