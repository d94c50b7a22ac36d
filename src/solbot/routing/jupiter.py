"""Jupiter DEX aggregator integration for Solana.

Uses Jupiter Aggregator API for swaps on Solana.
API docs: https://station.jup.ag/docs/apis/swap-api
"""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from solbot.chain.gateway import to_smallest_units
from solbot.errors import GatewayFailure, InvalidInputFormat
from solbot.routing.base import Quote, SwapProvider, SwapTransaction, TokenInfo

logger = logging.getLogger(__name__)

# Jupiter API endpoints
JUPITER_API_V6 = "https://quote-api.jup.ag/v6"
JUPITER_TOKEN_LIST = "https://token.jup.ag/strict"

# Well-known tokens, resolved without a token list round trip
KNOWN_TOKENS = {
    token.symbol: token
    for token in (
        TokenInfo("SOL", "So11111111111111111111111111111111111111112", 9, "Wrapped SOL"),
        TokenInfo("USDT", "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB", 6, "USDT"),
        TokenInfo("USDC", "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", 6, "USD Coin"),
        TokenInfo("RAY", "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R", 6, "Raydium"),
        TokenInfo("ORCA", "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE", 6, "Orca"),
        TokenInfo("JUP", "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN", 6, "Jupiter"),
        TokenInfo("BONK", "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263", 5, "Bonk"),
        TokenInfo("WIF", "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm", 6, "dogwifhat"),
        TokenInfo("PYTH", "HZ1JovNiVvGrGNiiYvEozEVgZ58xaU3RKwX8eACQBCt3", 6, "Pyth Network"),
        TokenInfo("MNDE", "MNDEFzGvMt87ueuHvVU9VcTqsAP5b3fTGPsHuuPA5ey", 9, "Marinade"),
        TokenInfo("HNT", "hntyVP6YFm1Hg25TN9WGLqM12b8TQmcknKrdu1oxWux", 8, "Helium"),
    )
}


class JupiterProvider(SwapProvider):
    """Jupiter DEX aggregator provider for Solana.

    Jupiter aggregates liquidity from Raydium, Orca, Meteora and other
    Solana DEXes to find the best swap rates.
    """

    def __init__(
        self,
        base_url: str = JUPITER_API_V6,
        token_list_url: str = JUPITER_TOKEN_LIST,
        api_key: Optional[str] = None,
        slippage_bps: int = 50,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Jupiter provider.

        Args:
            base_url: Quote/swap API root
            token_list_url: Token list used for symbols outside KNOWN_TOKENS
            api_key: Optional API key for higher rate limits
            slippage_bps: Max slippage in basis points
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.token_list_url = token_list_url
        self.api_key = api_key
        self.slippage_bps = slippage_bps
        self.timeout = timeout
        self._transport = transport
        self._token_list: Optional[dict[str, TokenInfo]] = None

    @property
    def name(self) -> str:
        return "Jupiter"

    def _get_headers(self) -> dict:
        """Get API headers."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _load_token_list(self) -> dict[str, TokenInfo]:
        """Fetch and cache the token list, keyed by upper-case symbol.

        The first entry wins when several tokens share a symbol.
        """
        if self._token_list is not None:
            return self._token_list

        try:
            async with self._http() as client:
                response = await client.get(self.token_list_url, headers=self._get_headers())
                response.raise_for_status()
                entries = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Jupiter token list error: {e}")
            raise GatewayFailure(f"Could not load token list: {e}") from e

        if not isinstance(entries, list):
            raise GatewayFailure("Token list has an unexpected format")

        tokens: dict[str, TokenInfo] = {}
        for entry in entries:
            try:
                token = TokenInfo(
                    symbol=str(entry["symbol"]),
                    mint=str(entry["address"]),
                    decimals=int(entry["decimals"]),
                    name=entry.get("name"),
                )
            except (KeyError, TypeError, ValueError):
                continue
            tokens.setdefault(token.symbol.upper(), token)

        logger.info(f"Loaded {len(tokens)} tokens from Jupiter token list")
        self._token_list = tokens
        return tokens

    async def find_token_by_symbol(self, symbol: str) -> Optional[TokenInfo]:
        """Resolve a symbol, case-insensitively."""
        key = symbol.upper()
        if key in KNOWN_TOKENS:
            return KNOWN_TOKENS[key]
        tokens = await self._load_token_list()
        return tokens.get(key)

    async def get_quote(self, from_token: TokenInfo, to_token: TokenInfo, amount: Decimal) -> Quote:
        """Get swap quote from Jupiter.

        Args:
            from_token: Source token
            to_token: Destination token
            amount: Amount in human-readable units

        Returns:
            Quote with best available rate
        """
        try:
            in_amount = to_smallest_units(amount, from_token.decimals)
        except ValueError:
            raise InvalidInputFormat(f"Amount is too large for {from_token.symbol}.")
        if in_amount <= 0:
            raise InvalidInputFormat(
                f"Amount is too small for {from_token.symbol} ({from_token.decimals} decimals)."
            )

        try:
            async with self._http() as client:
                response = await client.get(
                    f"{self.base_url}/quote",
                    headers=self._get_headers(),
                    params={
                        "inputMint": from_token.mint,
                        "outputMint": to_token.mint,
                        "amount": str(in_amount),
                        "slippageBps": str(self.slippage_bps),
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Jupiter quote error: {e}")
            raise GatewayFailure(f"Jupiter is unreachable: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Jupiter API error: {response.status_code} - {response.text}")
            raise GatewayFailure(f"No route for {from_token.symbol} -> {to_token.symbol}: {_error_text(response)}")

        try:
            data = response.json()
            out_amount = int(data["outAmount"])
            price_impact = Decimal(str(data.get("priceImpactPct") or "0"))
        except (ValueError, KeyError, TypeError, ArithmeticError) as e:
            raise GatewayFailure("Jupiter returned a malformed quote") from e

        return Quote(
            provider=self.name,
            from_token=from_token,
            to_token=to_token,
            amount=amount,
            in_amount=in_amount,
            out_amount=out_amount,
            price_impact_pct=price_impact,
            slippage_bps=self.slippage_bps,
            quote_response=data,
        )

    async def build_swap_transaction(self, quote_response: dict, user_address: str) -> SwapTransaction:
        """Get the swap transaction for a quote, to be signed by the user's wallet."""
        try:
            async with self._http() as client:
                response = await client.post(
                    f"{self.base_url}/swap",
                    headers=self._get_headers(),
                    json={
                        "quoteResponse": quote_response,
                        "userPublicKey": user_address,
                        "wrapAndUnwrapSol": True,
                        "dynamicComputeUnitLimit": True,
                        "prioritizationFeeLamports": "auto",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Jupiter swap error: {e}")
            raise GatewayFailure(f"Jupiter is unreachable: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Jupiter swap API error: {response.status_code} - {response.text}")
            raise GatewayFailure(f"Jupiter swap API error: {_error_text(response)}")

        try:
            data = response.json()
        except ValueError as e:
            raise GatewayFailure("Jupiter returned a malformed swap response") from e

        payload = data.get("swapTransaction")
        if not payload:
            raise GatewayFailure("No swap transaction returned")

        return SwapTransaction(
            payload=payload,
            last_valid_block_height=data.get("lastValidBlockHeight"),
        )


def _error_text(response: httpx.Response) -> str:
    """Best-effort error message from a Jupiter error response."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"HTTP {response.status_code}"


def create_jupiter_provider() -> JupiterProvider:
    """Create a Jupiter provider from settings."""
    from solbot.config import get_settings

    settings = get_settings()
    return JupiterProvider(
        base_url=settings.jupiter_api_url,
        token_list_url=settings.token_list_url,
        api_key=settings.jupiter_api_key,
        slippage_bps=settings.swap_slippage_bps,
        timeout=settings.http_timeout_seconds,
    )
