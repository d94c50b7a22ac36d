"""Tests for the routing module: Jupiter quotes/swaps and CoinGecko prices."""

import json
from decimal import Decimal

import httpx
import pytest

from solbot.errors import GatewayFailure, InvalidInputFormat
from solbot.routing.base import TokenInfo
from solbot.routing.jupiter import KNOWN_TOKENS, JupiterProvider
from solbot.routing.prices import PriceProvider, coingecko_id

SOL = KNOWN_TOKENS["SOL"]
USDC = KNOWN_TOKENS["USDC"]


def _jupiter(handler) -> JupiterProvider:
    return JupiterProvider(
        base_url="https://jup.test/v6",
        token_list_url="https://jup.test/tokens",
        transport=httpx.MockTransport(handler),
    )


class TestJupiterTokens:
    """Tests for symbol resolution."""

    @pytest.mark.asyncio
    async def test_known_tokens_need_no_request(self):
        """Test that well-known symbols resolve without HTTP."""

        def handler(request):
            raise AssertionError("unexpected request")

        provider = _jupiter(handler)

        assert await provider.find_token_by_symbol("usdc") == USDC
        assert (await provider.find_token_by_symbol("SOL")).decimals == 9

    @pytest.mark.asyncio
    async def test_token_list_lookup_is_cached(self):
        """Test that unknown symbols come from the token list, fetched once."""
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(
                200,
                json=[
                    {"address": "Mint111", "symbol": "FOO", "decimals": 4, "name": "Foo"},
                    {"address": "Mint222", "symbol": "FOO", "decimals": 8},
                    {"symbol": "BROKEN"},
                ],
            )

        provider = _jupiter(handler)

        foo = await provider.find_token_by_symbol("foo")
        assert foo == TokenInfo(symbol="FOO", mint="Mint111", decimals=4, name="Foo")
        assert await provider.find_token_by_symbol("BROKEN") is None
        assert calls == ["/tokens"]

    @pytest.mark.asyncio
    async def test_token_list_failure(self):
        provider = _jupiter(lambda request: httpx.Response(503))

        with pytest.raises(GatewayFailure):
            await provider.find_token_by_symbol("FOO")


class TestJupiterQuote:
    """Tests for Jupiter quotes."""

    @pytest.mark.asyncio
    async def test_quote_scales_amounts(self):
        """Test that amounts are sent in base units and output is scaled back."""
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(
                200,
                json={"inAmount": "1000000000", "outAmount": "15234567", "priceImpactPct": "0.0012"},
            )

        quote = await _jupiter(handler).get_quote(SOL, USDC, Decimal("1"))

        assert seen["inputMint"] == SOL.mint
        assert seen["outputMint"] == USDC.mint
        assert seen["amount"] == "1000000000"
        assert seen["slippageBps"] == "50"
        assert quote.in_amount == 1_000_000_000
        assert quote.expected_output == Decimal("15.234567")
        assert quote.price_impact_pct == Decimal("0.0012")
        assert quote.quote_response["outAmount"] == "15234567"

    @pytest.mark.asyncio
    async def test_amount_below_smallest_unit(self):
        provider = _jupiter(lambda request: httpx.Response(500))

        with pytest.raises(InvalidInputFormat):
            await provider.get_quote(USDC, SOL, Decimal("0.0000001"))

    @pytest.mark.asyncio
    async def test_amount_beyond_u64(self):
        provider = _jupiter(lambda request: httpx.Response(500))

        with pytest.raises(InvalidInputFormat, match="too large"):
            await provider.get_quote(SOL, USDC, Decimal("1e11"))

    @pytest.mark.asyncio
    async def test_no_route(self):
        provider = _jupiter(lambda request: httpx.Response(400, json={"error": "Could not find any route"}))

        with pytest.raises(GatewayFailure, match="Could not find any route"):
            await provider.get_quote(SOL, USDC, Decimal("1"))

    @pytest.mark.asyncio
    async def test_malformed_quote(self):
        provider = _jupiter(lambda request: httpx.Response(200, json={"unexpected": True}))

        with pytest.raises(GatewayFailure, match="malformed"):
            await provider.get_quote(SOL, USDC, Decimal("1"))

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(GatewayFailure, match="unreachable"):
            await _jupiter(handler).get_quote(SOL, USDC, Decimal("1"))


class TestJupiterSwap:
    """Tests for building swap transactions."""

    @pytest.mark.asyncio
    async def test_build_swap_posts_stored_quote(self):
        body = {}

        def handler(request):
            body.update(json.loads(request.content))
            return httpx.Response(200, json={"swapTransaction": "AQID", "lastValidBlockHeight": 99})

        quote_response = {"inAmount": "1", "outAmount": "2"}
        swap_tx = await _jupiter(handler).build_swap_transaction(quote_response, "UserAddr")

        assert body["quoteResponse"] == quote_response
        assert body["userPublicKey"] == "UserAddr"
        assert body["wrapAndUnwrapSol"] is True
        assert swap_tx.payload == "AQID"
        assert swap_tx.last_valid_block_height == 99

    @pytest.mark.asyncio
    async def test_missing_transaction(self):
        provider = _jupiter(lambda request: httpx.Response(200, json={}))

        with pytest.raises(GatewayFailure, match="No swap transaction"):
            await provider.build_swap_transaction({}, "UserAddr")


class TestPriceProvider:
    """Tests for CoinGecko prices."""

    def test_coingecko_ids(self):
        assert coingecko_id("sol") == "solana"
        assert coingecko_id("XYZ") == "xyz"

    @pytest.mark.asyncio
    async def test_get_prices(self):
        def handler(request):
            assert request.url.params["vs_currencies"] == "usd"
            assert set(request.url.params["ids"].split(",")) == {"solana", "bonk", "nothing"}
            return httpx.Response(200, json={"solana": {"usd": 151.23}, "bonk": {"usd": 0.00002}})

        provider = PriceProvider(base_url="https://cg.test", transport=httpx.MockTransport(handler))
        prices = await provider.get_prices(["sol", "BONK", "nothing"])

        assert prices["SOL"] == Decimal("151.23")
        assert prices["BONK"] == Decimal("0.00002")
        assert prices["NOTHING"] is None

    @pytest.mark.asyncio
    async def test_missing_price(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={}))
        provider = PriceProvider(base_url="https://cg.test", transport=transport)

        with pytest.raises(GatewayFailure, match="Unable to fetch price for SOL"):
            await provider.get_sol_price()

    @pytest.mark.asyncio
    async def test_service_down(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(429))
        provider = PriceProvider(base_url="https://cg.test", transport=transport)

        with pytest.raises(GatewayFailure):
            await provider.get_prices(["SOL"])
