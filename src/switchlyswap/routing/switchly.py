"""Switchly cross-chain swap quotes.

Quotes come from local pool math over the node's pool list. Optionally the
Midgard quote endpoint is asked first; any failure there falls back to the
pool engine. Swaps are started by sending funds to the chain's inbound vault
with a ``SWAP:`` memo; nothing here signs or broadcasts.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal
from typing import Callable, Optional

from switchlyswap.assets import (
    AssetRef,
    find_asset,
    get_asset,
    is_valid_swap_pair,
)
from switchlyswap.bridge.client import SwitchlyClient
from switchlyswap.bridge.models import NetworkResponse, PoolResponse
from switchlyswap.chains import is_valid_address
from switchlyswap.config import Settings, get_settings
from switchlyswap.exceptions import ProbeTransientError, QuoteUnavailable
from switchlyswap.memo import build_swap_memo
from switchlyswap.routing.base import (
    NetworkFees,
    PoolSnapshot,
    Quote,
    RouteProvider,
    SwapInstructions,
)
from switchlyswap.routing.pool_engine import PoolQuoteEngine, output_quantum
from switchlyswap.units import UnitNormalizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolBook:
    """Pools and fee parameters fetched together; replaced, never patched."""

    pools: dict[str, PoolSnapshot]
    network: Optional[NetworkFees]
    fetched_at: float = field(default_factory=time.monotonic)

    def get(self, asset: AssetRef) -> Optional[PoolSnapshot]:
        return self.pools.get(asset.ticker)


def build_pool_book(
    pools: list[PoolResponse],
    network: Optional[NetworkResponse],
    normalizer: Optional[UnitNormalizer] = None,
    fetched_at: Optional[float] = None,
) -> PoolBook:
    """Turn raw node payloads into standardized pool snapshots.

    Pools for unknown assets and pools that are not available are dropped.
    """
    normalizer = normalizer or UnitNormalizer()
    snapshots: dict[str, PoolSnapshot] = {}

    for pool in pools:
        asset = find_asset(pool.asset)
        if asset is None:
            continue
        if not pool.is_available:
            logger.debug(f"Skipping {pool.asset} pool with status {pool.status}")
            continue

        snapshots[asset.ticker] = PoolSnapshot(
            asset=asset,
            asset_depth=normalizer.normalize_pool_balance(pool.balance_asset, asset),
            bridge_depth=pool.balance_switch,
            status=pool.status,
        )

    fees = None
    if network is not None:
        fees = NetworkFees(
            native_outbound_fee=network.native_outbound_fee_switch,
            outbound_fee_multiplier_bps=network.outbound_fee_multiplier,
        )

    return PoolBook(
        pools=snapshots,
        network=fees,
        fetched_at=fetched_at if fetched_at is not None else time.monotonic(),
    )


class SwitchlyQuoteProvider(RouteProvider):
    """Quote provider backed by the Switchly node and its pools."""

    def __init__(
        self,
        client: Optional[SwitchlyClient] = None,
        engine: Optional[PoolQuoteEngine] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self.client = client or SwitchlyClient()
        self.engine = engine or PoolQuoteEngine(
            quote_ttl_seconds=self.settings.quote_ttl_seconds
        )
        self.normalizer = self.engine.normalizer
        self._clock = clock
        self._book: Optional[PoolBook] = None
        self._book_lock = asyncio.Lock()

    async def get_pool_book(self, refresh: bool = False) -> PoolBook:
        """Current pool book, fetched again once the cache window has passed.

        Raises:
            ProbeTransientError: the pool list could not be fetched
        """
        async with self._book_lock:
            book = self._book
            if (
                not refresh
                and book is not None
                and self._clock() - book.fetched_at < self.settings.pool_cache_seconds
            ):
                return book

            pools_result, network_result = await asyncio.gather(
                self.client.get_pools(),
                self.client.get_network(),
                return_exceptions=True,
            )

            if isinstance(pools_result, BaseException):
                raise pools_result

            network = None
            if isinstance(network_result, ProbeTransientError):
                logger.warning(f"Network fee parameters unavailable, using fallbacks: {network_result}")
            elif isinstance(network_result, BaseException):
                raise network_result
            else:
                network = network_result

            self._book = build_pool_book(
                pools_result, network, self.normalizer, fetched_at=self._clock()
            )
            logger.debug(f"Pool book refreshed: {sorted(self._book.pools)}")
            return self._book

    async def get_quote(
        self,
        from_asset: str,
        to_asset: str,
        amount: Decimal,
    ) -> Optional[Quote]:
        """Get a swap quote.

        Returns None for same-chain pairs and pairs without liquidity.

        Raises:
            InvalidAssetError: unknown ticker
            ProbeTransientError: pools could not be fetched
        """
        source = get_asset(from_asset)
        dest = get_asset(to_asset)

        if not is_valid_swap_pair(source.ticker, dest.ticker):
            logger.debug(f"Not a cross-chain pair: {source.ticker} -> {dest.ticker}")
            return None

        if self.settings.prefer_network_quote:
            try:
                quote = await self._network_quote(source, dest, Decimal(str(amount)))
                if quote is not None:
                    return quote
            except ProbeTransientError as e:
                logger.warning(f"Network quote failed, using pool math: {e}")

        book = await self.get_pool_book()
        return self.engine.quote(book.get(source), book.get(dest), amount, book.network)

    async def get_exchange_rate(self, from_asset: str, to_asset: str) -> Optional[Decimal]:
        """Output per one unit of from_asset, after fees."""
        source = get_asset(from_asset)
        dest = get_asset(to_asset)
        if not is_valid_swap_pair(source.ticker, dest.ticker):
            return None

        book = await self.get_pool_book()
        return self.engine.exchange_rate(book.get(source), book.get(dest), book.network)

    async def _network_quote(
        self, source: AssetRef, dest: AssetRef, amount: Decimal
    ) -> Optional[Quote]:
        if amount <= 0:
            return None

        amount_standard = self.normalizer.to_standard_units(amount, source)
        if amount_standard <= 0:
            return None

        data = await self.client.get_swap_quote(
            source.pool_asset, dest.pool_asset, amount_standard
        )
        if data is None:
            return None

        output = self.normalizer.to_human_units(Decimal(data.expected_amount_out), dest)
        slippage_bps = data.slippage_bps or data.fees.slippage_bps

        return Quote(
            from_asset=source.ticker,
            to_asset=dest.ticker,
            input_amount=amount,
            output_amount=output,
            exchange_rate=(output / amount).quantize(
                output_quantum(dest.decimals), rounding=ROUND_DOWN
            ),
            price_impact_pct=Decimal(slippage_bps) / Decimal(100),
            liquidity_fee=self.normalizer.to_human_units(Decimal(data.fees.liquidity), dest),
            outbound_fee=self.normalizer.to_human_units(Decimal(data.fees.outbound), dest),
            provider="switchly-network",
            is_estimated=False,
            estimated_time_seconds=data.total_swap_seconds or 60,
            ttl_seconds=self.settings.quote_ttl_seconds,
        )

    async def get_swap_instructions(
        self, quote: Quote, destination_address: str
    ) -> SwapInstructions:
        """Inbound vault, router and memo for executing a quote.

        Raises:
            ValueError: destination address is not valid for the output chain
            QuoteUnavailable: the source chain is halted or has no vault
        """
        source = get_asset(quote.from_asset)
        dest = get_asset(quote.to_asset)

        if not is_valid_address(destination_address, dest.chain):
            raise ValueError(f"Invalid {dest.chain} destination address: {destination_address}")

        vault, router = await self._resolve_inbound(source, dest)

        return SwapInstructions(
            quote=quote,
            inbound_address=vault,
            memo=build_swap_memo(dest.ticker, destination_address),
            destination_address=destination_address,
            router=router,
        )

    async def _resolve_inbound(
        self, source: AssetRef, dest: AssetRef
    ) -> tuple[str, Optional[str]]:
        try:
            inbound = await self.client.get_inbound_addresses()
        except ProbeTransientError as e:
            logger.warning(f"Inbound addresses unavailable, using fallback vault: {e}")
            inbound = []

        for entry in inbound:
            if entry.chain.upper() != source.chain:
                continue
            if entry.is_paused:
                raise QuoteUnavailable(source.ticker, dest.ticker, reason=f"{source.chain} is halted")
            if entry.address:
                return entry.address, entry.router

        vault, router = self.settings.get_vault_fallback(source.chain)
        if not vault:
            raise QuoteUnavailable(source.ticker, dest.ticker, reason="no inbound address")
        return vault, router

    async def close(self) -> None:
        await self.client.close()
