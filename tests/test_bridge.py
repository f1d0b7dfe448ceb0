"""Tests for the Switchly client, outbound queue matching and quote provider."""

from decimal import Decimal

import httpx
import pytest

from switchlyswap.bridge.actions import ActionState, ActionType, BridgeActionProbe, classify
from switchlyswap.bridge.client import SwitchlyClient
from switchlyswap.bridge.models import OutboundQueueItem
from switchlyswap.config import Settings
from switchlyswap.exceptions import InvalidAssetError, ProbeTransientError, QuoteUnavailable
from switchlyswap.routing.fees import FixedFeeEstimator
from switchlyswap.routing.pool_engine import PoolQuoteEngine
from switchlyswap.routing.switchly import SwitchlyQuoteProvider

from conftest import SOURCE_HASH, XLM_ADDRESS, FakeClock, mock_client

POOLS = [
    {"asset": "ETH.ETH", "balance_asset": "1000000000", "balance_switch": "500000000", "status": "Available"},
    # Stellar balances are reported with 7 decimals
    {"asset": "XLM.XLM", "balance_asset": "200000000", "balance_switch": "500000000", "status": "Available"},
    {"asset": "XLM.USDC", "balance_asset": "5000000000", "balance_switch": "100000000", "status": "Staged"},
    {"asset": "BTC.BTC", "balance_asset": "100", "balance_switch": "100", "status": "Available"},
]

NETWORK = {"native_outbound_fee_switch": "2000000", "outbound_fee_multiplier": "15000"}


class FakeNode:
    """Routes requests for the node and Midgard; counts hits per path."""

    def __init__(self, routes: dict):
        self.routes = routes
        self.hits: dict[str, int] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.hits[path] = self.hits.get(path, 0) + 1
        result = self.routes.get(path)
        if result is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)


def make_client(routes: dict) -> tuple[SwitchlyClient, FakeNode]:
    node = FakeNode(routes)
    client = SwitchlyClient(
        api_url="http://node.test",
        midgard_url="http://midgard.test",
        prefix="switchly",
        client=mock_client(node),
    )
    return client, node


def queue_item(**kwargs) -> OutboundQueueItem:
    return OutboundQueueItem.model_validate(kwargs)


class TestClassification:
    """Tests for outbound queue classification."""

    def test_refund_memo(self):
        item = queue_item(in_hash="AB", memo="REFUND:AB", coin={"asset": "ETH.ETH", "amount": "1"})
        assert classify(item) == (ActionType.REFUND, ActionState.FAILED)

    def test_out_memo(self):
        item = queue_item(in_hash="AB", memo="OUT:AB", coin={"asset": "XLM.XLM", "amount": "1"})
        assert classify(item) == (ActionType.SWAP, ActionState.SUCCESS)

    def test_other_memo_is_processing(self):
        item = queue_item(in_hash="AB", memo="MIGRATE:12", coin={"asset": "XLM.XLM", "amount": "1"})
        assert classify(item) == (ActionType.PROCESSING, ActionState.PENDING)

    def test_missing_coin_is_processing(self):
        item = queue_item(in_hash="AB", memo="OUT:AB")
        assert classify(item) == (ActionType.PROCESSING, ActionState.PENDING)


class TestBridgeActionProbe:
    """Tests for matching the outbound queue on in_hash."""

    @pytest.mark.asyncio
    async def test_matches_normalized_hash(self):
        queue = [
            {"in_hash": "FF" * 32, "memo": "OUT:" + "FF" * 32, "coin": {"asset": "XLM.XLM", "amount": "5"}},
            {
                "in_hash": SOURCE_HASH[2:].upper(),
                "out_hash": "",
                "memo": "OUT:" + SOURCE_HASH[2:].upper(),
                "to_address": XLM_ADDRESS,
                "coin": {"asset": "XLM.XLM", "amount": "18347107"},
                "scheduled_outbound_height": 420,
            },
        ]
        client, _ = make_client({"/switchly/queue/outbound": queue})
        action = await BridgeActionProbe(client).find_action(SOURCE_HASH)

        assert action is not None
        assert action.classified_type == ActionType.SWAP
        assert action.state == ActionState.SUCCESS
        assert action.out_hash is None
        assert action.to_address == XLM_ADDRESS
        assert action.coin_amount == "18347107"
        assert action.scheduled_height == 420

    @pytest.mark.asyncio
    async def test_absent_returns_none(self):
        client, _ = make_client({"/switchly/queue/outbound": []})
        assert await BridgeActionProbe(client).find_action(SOURCE_HASH) is None

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self):
        client, _ = make_client({"/switchly/queue/outbound": httpx.Response(500)})

        with pytest.raises(ProbeTransientError) as exc_info:
            await BridgeActionProbe(client).find_action(SOURCE_HASH)
        assert exc_info.value.status_code == 500


def make_provider(routes: dict, clock=None, **overrides) -> tuple[SwitchlyQuoteProvider, FakeNode]:
    client, node = make_client(routes)
    overrides.setdefault("prefer_network_quote", False)
    settings = Settings(pool_cache_seconds=15.0, **overrides)
    provider = SwitchlyQuoteProvider(
        client=client,
        engine=PoolQuoteEngine(fee_estimator=FixedFeeEstimator()),
        settings=settings,
        clock=clock or FakeClock(),
    )
    return provider, node


class TestSwitchlyQuoteProvider:
    """Tests for quotes over the node's pool list."""

    @pytest.mark.asyncio
    async def test_pool_book_normalizes_depths(self):
        provider, _ = make_provider({"/switchly/pools": POOLS, "/switchly/network": NETWORK})
        book = await provider.get_pool_book()

        assert set(book.pools) == {"ETH.ETH", "XLM.XLM"}
        assert book.pools["XLM.XLM"].asset_depth == 2_000_000_000
        assert book.network.native_outbound_fee == 2_000_000
        assert book.network.outbound_fee_multiplier_bps == 15_000

    @pytest.mark.asyncio
    async def test_quote_from_pools(self):
        provider, _ = make_provider({"/switchly/pools": POOLS, "/switchly/network": NETWORK})
        quote = await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1"))

        assert quote is not None
        assert quote.output_amount == Decimal("1.8347107")
        assert quote.provider == "pool"

    @pytest.mark.asyncio
    async def test_pool_book_is_cached(self):
        clock = FakeClock()
        provider, node = make_provider(
            {"/switchly/pools": POOLS, "/switchly/network": NETWORK}, clock=clock
        )

        await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1"))
        await provider.get_exchange_rate("ETH.ETH", "XLM.XLM")
        assert node.hits["/switchly/pools"] == 1

        clock.advance(16)
        await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1"))
        assert node.hits["/switchly/pools"] == 2

        await provider.get_pool_book(refresh=True)
        assert node.hits["/switchly/pools"] == 3

    @pytest.mark.asyncio
    async def test_missing_network_params_still_quotes(self):
        provider, _ = make_provider(
            {"/switchly/pools": POOLS, "/switchly/network": httpx.Response(503)}
        )
        book = await provider.get_pool_book()

        assert book.network is None
        assert await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1")) is not None

    @pytest.mark.asyncio
    async def test_malformed_pool_entry_is_skipped(self):
        pools = [dict(POOLS[0]), dict(POOLS[1], balance_switch="n/a")]
        provider, _ = make_provider({"/switchly/pools": pools, "/switchly/network": NETWORK})
        book = await provider.get_pool_book()

        assert set(book.pools) == {"ETH.ETH"}
        assert await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1")) is None
        assert await provider.get_exchange_rate("ETH.ETH", "XLM.XLM") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "network",
        [
            {"native_outbound_fee_switch": "2000000", "outbound_fee_multiplier": "lots"},
            {"native_outbound_fee_switch": "NaN"},
            {"native_outbound_fee_switch": "-5"},
        ],
    )
    async def test_malformed_network_params_are_dropped(self, network):
        provider, _ = make_provider({"/switchly/pools": POOLS, "/switchly/network": network})
        book = await provider.get_pool_book()

        assert book.network is None
        assert await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1")) is not None

    @pytest.mark.asyncio
    async def test_pools_unavailable_raises(self):
        provider, _ = make_provider({"/switchly/pools": httpx.Response(502), "/switchly/network": NETWORK})

        with pytest.raises(ProbeTransientError):
            await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1"))

    @pytest.mark.asyncio
    async def test_same_chain_and_unpooled_pairs(self):
        provider, _ = make_provider({"/switchly/pools": POOLS, "/switchly/network": NETWORK})

        assert await provider.get_quote("ETH.ETH", "USDC.ETH", Decimal("1")) is None
        # USDC.XLM pool is staged, so it is treated as missing
        assert await provider.get_quote("ETH.ETH", "USDC.XLM", Decimal("1")) is None

    @pytest.mark.asyncio
    async def test_unknown_asset_raises(self):
        provider, _ = make_provider({"/switchly/pools": POOLS, "/switchly/network": NETWORK})

        with pytest.raises(InvalidAssetError):
            await provider.get_quote("DOGE.DOGE", "XLM.XLM", Decimal("1"))

    @pytest.mark.asyncio
    async def test_network_quote_preferred(self):
        provider, node = make_provider(
            {
                "/v2/quote/swap": {
                    "expected_amount_out": "180000000",
                    "fees": {"liquidity": "16000000", "outbound": "100", "total": "16000100"},
                    "slippage_bps": 820,
                    "total_swap_seconds": 45,
                },
            },
            prefer_network_quote=True,
        )
        quote = await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1"))

        assert quote.provider == "switchly-network"
        assert quote.is_estimated is False
        assert quote.output_amount == Decimal("1.8")
        assert quote.price_impact_pct == Decimal("8.2")
        assert quote.estimated_time_seconds == 45
        assert "/switchly/pools" not in node.hits

    @pytest.mark.asyncio
    async def test_network_quote_failure_falls_back(self):
        provider, _ = make_provider(
            {
                "/v2/quote/swap": httpx.Response(500),
                "/switchly/pools": POOLS,
                "/switchly/network": NETWORK,
            },
            prefer_network_quote=True,
        )
        quote = await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1"))

        assert quote.provider == "pool"
        assert quote.output_amount == Decimal("1.8347107")

    @pytest.mark.asyncio
    async def test_malformed_network_quote_falls_back(self):
        provider, _ = make_provider(
            {
                "/v2/quote/swap": {"expected_amount_out": "about 1.8"},
                "/switchly/pools": POOLS,
                "/switchly/network": NETWORK,
            },
            prefer_network_quote=True,
        )
        quote = await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1"))

        assert quote.provider == "pool"


class TestSwapInstructions:
    """Tests for inbound vault and memo resolution."""

    async def quote(self, provider):
        return await provider.get_quote("ETH.ETH", "XLM.XLM", Decimal("1"))

    @pytest.mark.asyncio
    async def test_instructions_from_inbound_addresses(self):
        provider, _ = make_provider(
            {
                "/switchly/pools": POOLS,
                "/switchly/network": NETWORK,
                "/switchly/inbound_addresses": [
                    {"chain": "XLM", "address": "GVAULT", "halted": False},
                    {"chain": "ETH", "address": "0xvault", "router": "0xrouter", "halted": False},
                ],
            }
        )
        instructions = await provider.get_swap_instructions(await self.quote(provider), XLM_ADDRESS)

        assert instructions.inbound_address == "0xvault"
        assert instructions.router == "0xrouter"
        assert instructions.memo == f"SWAP:XLM.XLM:{XLM_ADDRESS}"
        assert instructions.to_dict()["expected_output"]["destination"] == XLM_ADDRESS

    @pytest.mark.asyncio
    async def test_halted_chain_rejected(self):
        provider, _ = make_provider(
            {
                "/switchly/pools": POOLS,
                "/switchly/network": NETWORK,
                "/switchly/inbound_addresses": [
                    {"chain": "ETH", "address": "0xvault", "chain_trading_paused": True},
                ],
            }
        )
        with pytest.raises(QuoteUnavailable):
            await provider.get_swap_instructions(await self.quote(provider), XLM_ADDRESS)

    @pytest.mark.asyncio
    async def test_fallback_vault_when_unreachable(self):
        provider, _ = make_provider(
            {
                "/switchly/pools": POOLS,
                "/switchly/network": NETWORK,
                "/switchly/inbound_addresses": httpx.Response(503),
            }
        )
        instructions = await provider.get_swap_instructions(await self.quote(provider), XLM_ADDRESS)

        vault, router = provider.settings.get_vault_fallback("ETH")
        assert instructions.inbound_address == vault
        assert instructions.router == router

    @pytest.mark.asyncio
    async def test_invalid_destination_address(self):
        provider, _ = make_provider({"/switchly/pools": POOLS, "/switchly/network": NETWORK})

        with pytest.raises(ValueError):
            await provider.get_swap_instructions(await self.quote(provider), "0x" + "1" * 40)
