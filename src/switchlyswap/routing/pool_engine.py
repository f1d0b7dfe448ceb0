"""Double-leg pool pricing through the SWITCH bridge asset.

The first leg uses the pool ratio only (no curve), matching the network's own
deterministic pricing; slippage shows up through the liquidity fee

    fee = x^2 * Y / (x + X)^2

with x the input, X the input pool's asset depth and Y the output pool's asset
depth, all in standardized units.
"""

import logging
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Optional

from switchlyswap.routing.base import NetworkFees, PoolSnapshot, Quote
from switchlyswap.routing.fees import ApproximateFeeEstimator, OutboundFeeEstimator
from switchlyswap.units import STANDARD_DECIMALS, UnitNormalizer

logger = logging.getLogger(__name__)

UNIT_AMOUNT = Decimal("1")
FEE_QUANT = Decimal(1).scaleb(-STANDARD_DECIMALS)
IMPACT_QUANT = Decimal("0.000001")


def output_quantum(decimals: int) -> Decimal:
    """Smallest displayable step for an output asset."""
    return Decimal(1).scaleb(-min(decimals, STANDARD_DECIMALS))


class PoolQuoteEngine:
    """Computes quotes from two pool snapshots.

    Stateless apart from its collaborators; safe to share between requests.
    """

    def __init__(
        self,
        fee_estimator: Optional[OutboundFeeEstimator] = None,
        normalizer: Optional[UnitNormalizer] = None,
        quote_ttl_seconds: int = 60,
    ):
        self.fee_estimator = fee_estimator or ApproximateFeeEstimator()
        self.normalizer = normalizer or UnitNormalizer()
        self.quote_ttl_seconds = quote_ttl_seconds

    def quote(
        self,
        from_pool: Optional[PoolSnapshot],
        to_pool: Optional[PoolSnapshot],
        input_amount,
        network: Optional[NetworkFees] = None,
    ) -> Optional[Quote]:
        """Quote input_amount (human units of the from-pool asset).

        Returns None for a missing pool, an empty pool or a non-positive input.
        """
        if from_pool is None or to_pool is None:
            return None

        try:
            amount = Decimal(str(input_amount))
        except InvalidOperation:
            logger.debug(f"Unparseable input amount: {input_amount!r}")
            return None

        if not amount.is_finite() or amount <= 0:
            return None

        if not from_pool.has_liquidity or not to_pool.has_liquidity:
            logger.debug(
                f"No liquidity: {from_pool.asset.ticker} or {to_pool.asset.ticker}"
            )
            return None

        x = Decimal(self.normalizer.to_standard_units(amount, from_pool.asset))
        if x <= 0:
            # Below the standardized resolution
            return None

        from_asset_depth = Decimal(from_pool.asset_depth)
        from_bridge_depth = Decimal(from_pool.bridge_depth)
        to_asset_depth = Decimal(to_pool.asset_depth)
        to_bridge_depth = Decimal(to_pool.bridge_depth)

        bridge_out = x * from_bridge_depth / from_asset_depth
        asset_out = bridge_out * to_asset_depth / to_bridge_depth

        liquidity_fee_std = (x * x * to_asset_depth) / ((x + from_asset_depth) ** 2)
        liquidity_fee = self.normalizer.to_human_units(liquidity_fee_std, to_pool.asset)
        outbound_fee = self.fee_estimator.estimate(to_pool.asset, network)

        gross_output = self.normalizer.to_human_units(asset_out, to_pool.asset)
        output = max(Decimal(0), gross_output - liquidity_fee - outbound_fee)
        output = output.quantize(output_quantum(to_pool.asset.decimals), rounding=ROUND_DOWN)

        expected = x * (from_bridge_depth / from_asset_depth) * (to_asset_depth / to_bridge_depth)
        actual = asset_out - liquidity_fee_std
        if expected > 0:
            price_impact = (expected - actual) / expected * 100
        else:
            price_impact = Decimal(0)
        price_impact = max(Decimal(0), price_impact).quantize(IMPACT_QUANT, rounding=ROUND_DOWN)

        exchange_rate = (output / amount).quantize(
            output_quantum(to_pool.asset.decimals), rounding=ROUND_DOWN
        )

        logger.debug(
            f"Pool quote: {amount} {from_pool.asset.ticker} -> {output} {to_pool.asset.ticker} "
            f"(liq fee {liquidity_fee:.8f}, outbound {outbound_fee:.8f}, impact {price_impact}%)"
        )

        return Quote(
            from_asset=from_pool.asset.ticker,
            to_asset=to_pool.asset.ticker,
            input_amount=amount,
            output_amount=output,
            exchange_rate=exchange_rate,
            price_impact_pct=price_impact,
            liquidity_fee=liquidity_fee.quantize(FEE_QUANT, rounding=ROUND_HALF_EVEN),
            outbound_fee=outbound_fee.quantize(FEE_QUANT, rounding=ROUND_HALF_EVEN),
            provider="pool",
            is_estimated=True,
            ttl_seconds=self.quote_ttl_seconds,
        )

    def exchange_rate(
        self,
        from_pool: Optional[PoolSnapshot],
        to_pool: Optional[PoolSnapshot],
        network: Optional[NetworkFees] = None,
    ) -> Optional[Decimal]:
        """Headline rate: output for one unit of input, after fees."""
        quote = self.quote(from_pool, to_pool, UNIT_AMOUNT, network)
        return quote.exchange_rate if quote else None
