"""Quote types and the abstract provider interface."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from switchlyswap.assets import AssetRef

HIGH_PRICE_IMPACT_PCT = Decimal("5")


@dataclass(frozen=True)
class PoolSnapshot:
    """Depths of one asset<->SWITCH pool, in standardized (1e8) units."""

    asset: AssetRef
    asset_depth: int
    bridge_depth: int
    status: str = "available"

    @property
    def has_liquidity(self) -> bool:
        return self.asset_depth > 0 and self.bridge_depth > 0


@dataclass(frozen=True)
class NetworkFees:
    """Live fee parameters from the bridge's network endpoint."""

    native_outbound_fee: int  # SWITCH, standardized units
    outbound_fee_multiplier_bps: int

    @property
    def multiplier(self) -> Decimal:
        return Decimal(self.outbound_fee_multiplier_bps) / Decimal(10000)


@dataclass(frozen=True)
class Quote:
    """A swap quote. Amounts are in human units of their asset."""

    from_asset: str
    to_asset: str
    input_amount: Decimal
    output_amount: Decimal
    exchange_rate: Decimal
    price_impact_pct: Decimal
    liquidity_fee: Decimal
    outbound_fee: Decimal
    provider: str = "pool"
    is_estimated: bool = True  # computed locally from pool depths
    estimated_time_seconds: int = 60
    timestamp: float = field(default_factory=time.time)
    ttl_seconds: int = 60

    @property
    def total_fee(self) -> Decimal:
        """Liquidity fee plus outbound fee, in the output asset."""
        return self.liquidity_fee + self.outbound_fee

    @property
    def slippage_bps(self) -> int:
        return int(self.price_impact_pct * 100)

    @property
    def warning(self) -> Optional[str]:
        if self.price_impact_pct > HIGH_PRICE_IMPACT_PCT:
            return "High price impact"
        return None

    @property
    def is_expired(self) -> bool:
        """Check if quote has expired."""
        return time.time() > (self.timestamp + self.ttl_seconds)

    @property
    def seconds_until_expiry(self) -> float:
        """Get seconds until quote expires (negative if expired)."""
        return (self.timestamp + self.ttl_seconds) - time.time()

    def to_dict(self) -> dict:
        """Convert to dictionary for display/serialization."""
        return {
            "provider": self.provider,
            "from_asset": self.from_asset,
            "to_asset": self.to_asset,
            "input_amount": str(self.input_amount),
            "output_amount": str(self.output_amount),
            "exchange_rate": str(self.exchange_rate),
            "price_impact_pct": str(self.price_impact_pct),
            "liquidity_fee": str(self.liquidity_fee),
            "outbound_fee": str(self.outbound_fee),
            "total_fee": str(self.total_fee),
            "slippage_bps": self.slippage_bps,
            "estimated_time_seconds": self.estimated_time_seconds,
            "is_estimated": self.is_estimated,
            "warning": self.warning,
        }


@dataclass(frozen=True)
class SwapInstructions:
    """Where and how the user should send funds to start a swap."""

    quote: Quote
    inbound_address: str
    memo: str
    destination_address: str
    router: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "action": "Send funds to inbound address with memo",
            "inbound_address": self.inbound_address,
            "router": self.router,
            "memo": self.memo,
            "amount": str(self.quote.input_amount),
            "asset": self.quote.from_asset,
            "expected_output": {
                "amount": str(self.quote.output_amount),
                "asset": self.quote.to_asset,
                "destination": self.destination_address,
            },
        }


class RouteProvider(ABC):
    """Abstract base class for quote providers."""

    @abstractmethod
    async def get_quote(
        self,
        from_asset: str,
        to_asset: str,
        amount: Decimal,
    ) -> Optional[Quote]:
        """
        Get a swap quote.

        Args:
            from_asset: Source asset ticker (e.g., "ETH.ETH")
            to_asset: Destination asset ticker (e.g., "XLM.XLM")
            amount: Amount of from_asset to swap, in human units

        Returns:
            Quote if swap is possible, None otherwise
        """
        pass
