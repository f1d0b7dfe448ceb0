"""Outbound fee estimation.

The bridge charges a network-wide outbound fee denominated in SWITCH, scaled by
a live multiplier. Converting it to the output asset needs a SWITCH price.
``ApproximateFeeEstimator`` uses a fixed cross-rate table for that; swap in a
different ``OutboundFeeEstimator`` to price from a live feed.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from switchlyswap.assets import AssetRef
from switchlyswap.routing.base import NetworkFees
from switchlyswap.units import STANDARD_SCALE

logger = logging.getLogger(__name__)

# Approximate units of the output asset per 1 SWITCH
SWITCH_CROSS_RATES: dict[str, Decimal] = {
    "ETH.ETH": Decimal("0.1"),
    "USDC.ETH": Decimal("400"),
    "XLM.XLM": Decimal("4000"),
    "USDC.XLM": Decimal("400"),
}

# Static outbound fee estimates when network parameters are unavailable
FALLBACK_OUTBOUND_FEES: dict[str, Decimal] = {
    "ETH.ETH": Decimal("0.002"),
    "USDC.ETH": Decimal("8.0"),
    "XLM.XLM": Decimal("0.00001"),
    "USDC.XLM": Decimal("0.01"),
}


class OutboundFeeEstimator(ABC):
    """Prices the bridge's outbound fee in units of the output asset."""

    @abstractmethod
    def estimate(self, asset: AssetRef, network: Optional[NetworkFees]) -> Decimal:
        """Outbound fee in human units of asset."""
        pass


class ApproximateFeeEstimator(OutboundFeeEstimator):
    """Outbound fee from a hard-coded SWITCH cross-rate table."""

    def __init__(
        self,
        cross_rates: Optional[dict[str, Decimal]] = None,
        fallback_fees: Optional[dict[str, Decimal]] = None,
    ):
        self.cross_rates = cross_rates if cross_rates is not None else SWITCH_CROSS_RATES
        self.fallback_fees = (
            fallback_fees if fallback_fees is not None else FALLBACK_OUTBOUND_FEES
        )

    def estimate(self, asset: AssetRef, network: Optional[NetworkFees]) -> Decimal:
        if network is None:
            return self.fallback_fees.get(asset.ticker, Decimal("0"))

        rate = self.cross_rates.get(asset.ticker)
        if rate is None:
            logger.debug(f"No SWITCH cross-rate for {asset.ticker}, outbound fee left at 0")
            return Decimal("0")

        base_fee_switch = Decimal(network.native_outbound_fee) / STANDARD_SCALE
        return base_fee_switch * network.multiplier * rate


class FixedFeeEstimator(OutboundFeeEstimator):
    """Constant outbound fee regardless of asset; mostly for tests and dry runs."""

    def __init__(self, fee: Decimal = Decimal("0")):
        self.fee = fee

    def estimate(self, asset: AssetRef, network: Optional[NetworkFees]) -> Decimal:
        return self.fee
