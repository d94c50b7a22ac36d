"""USD price lookups via the CoinGecko simple-price API."""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from solbot.errors import GatewayFailure

logger = logging.getLogger(__name__)

COINGECKO_API = "https://api.coingecko.com/api/v3"

# Ticker -> CoinGecko coin id. Unknown tickers are tried as lower-case ids.
COINGECKO_IDS = {
    "SOL": "solana",
    "USDC": "usd-coin",
    "USDT": "tether",
    "RAY": "raydium",
    "ORCA": "orca",
    "JUP": "jupiter-exchange-solana",
    "BONK": "bonk",
    "WIF": "dogwifcoin",
    "PYTH": "pyth-network",
    "MNDE": "marinade",
    "HNT": "helium",
    "BTC": "bitcoin",
    "ETH": "ethereum",
}


def coingecko_id(symbol: str) -> str:
    """Map a ticker to a CoinGecko coin id."""
    return COINGECKO_IDS.get(symbol.upper(), symbol.lower())


class PriceProvider:
    """Fetches USD prices from CoinGecko."""

    def __init__(
        self,
        base_url: str = COINGECKO_API,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _fetch(self, ids: list[str]) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.base_url}/simple/price",
                    params={"ids": ",".join(ids), "vs_currencies": "usd"},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"CoinGecko price error: {e}")
            raise GatewayFailure(f"Price service unavailable: {e}") from e

        if not isinstance(data, dict):
            raise GatewayFailure("Price service returned an unexpected response")
        return data

    async def get_prices(self, symbols: list[str]) -> dict[str, Optional[Decimal]]:
        """Get USD prices for several tickers; unknown ones map to None."""
        ids = {symbol.upper(): coingecko_id(symbol) for symbol in symbols}
        data = await self._fetch(sorted(set(ids.values())))

        prices: dict[str, Optional[Decimal]] = {}
        for symbol, coin_id in ids.items():
            usd = data.get(coin_id, {}).get("usd")
            prices[symbol] = Decimal(str(usd)) if usd is not None else None
        return prices

    async def get_token_price(self, symbol: str) -> Decimal:
        """Get the USD price of one ticker.

        Raises:
            GatewayFailure: If the price is unavailable
        """
        price = (await self.get_prices([symbol]))[symbol.upper()]
        if price is None:
            raise GatewayFailure(f"Unable to fetch price for {symbol.upper()}")
        return price

    async def get_sol_price(self) -> Decimal:
        """Get the USD price of SOL."""
        return await self.get_token_price("SOL")


def create_price_provider() -> PriceProvider:
    """Create a price provider from settings."""
    from solbot.config import get_settings

    settings = get_settings()
    return PriceProvider(base_url=settings.coingecko_api_url, timeout=settings.http_timeout_seconds)
