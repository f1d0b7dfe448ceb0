"""Pydantic models for JSON returned by the Switchly node and Midgard.

The node serializes amounts as decimal strings. Pool, network and quote
amounts are parsed to integers here, so a malformed value fails validation
instead of surfacing later as a decimal error.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_amount(value: Any) -> int:
    """Parse a non-negative integer amount sent as a string or a number."""
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"invalid amount: {value!r}") from None
    if not parsed.is_finite() or parsed < 0:
        raise ValueError(f"invalid amount: {value!r}")
    return int(parsed)


class _BridgeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PoolResponse(_BridgeModel):
    """One entry of ``GET /<prefix>/pools``."""

    asset: str
    balance_asset: int = 0
    balance_switch: int = 0
    status: str = "Available"

    @field_validator("balance_asset", "balance_switch", mode="before")
    @classmethod
    def validate_balance(cls, v: Any) -> int:
        return parse_amount(v)

    @property
    def is_available(self) -> bool:
        return self.status.lower() == "available"


class NetworkResponse(_BridgeModel):
    """Fee parameters from ``GET /<prefix>/network``."""

    native_outbound_fee_switch: int = 0
    outbound_fee_multiplier: int = 10_000

    @field_validator("native_outbound_fee_switch", "outbound_fee_multiplier", mode="before")
    @classmethod
    def validate_fee(cls, v: Any) -> int:
        return parse_amount(v)


class Coin(_BridgeModel):
    asset: str
    amount: str = "0"


class OutboundQueueItem(_BridgeModel):
    """One scheduled outbound in ``GET /<prefix>/queue/outbound``."""

    in_hash: Optional[str] = None
    out_hash: Optional[str] = None
    memo: Optional[str] = None
    to_address: Optional[str] = None
    coin: Optional[Coin] = None
    chain: Optional[str] = None
    scheduled_outbound_height: Optional[int] = None
    max_gas: Optional[list[Coin]] = None
    gas_rate: Optional[int] = None


class InboundAddress(_BridgeModel):
    """One chain entry of ``GET /<prefix>/inbound_addresses``."""

    chain: str
    address: Optional[str] = None
    router: Optional[str] = None
    halted: bool = False
    chain_trading_paused: bool = False
    gas_rate: Optional[str] = None

    @property
    def is_paused(self) -> bool:
        return self.halted or self.chain_trading_paused


class QuoteFees(_BridgeModel):
    asset: Optional[str] = None
    liquidity: int = 0
    outbound: int = 0
    total: int = 0
    slippage_bps: int = 0

    @field_validator("liquidity", "outbound", "total", mode="before")
    @classmethod
    def validate_fee(cls, v: Any) -> int:
        return parse_amount(v)


class SwapQuoteResponse(_BridgeModel):
    """Midgard ``GET /v2/quote/swap`` payload."""

    expected_amount_out: int = 0
    fees: QuoteFees = Field(default_factory=QuoteFees)
    slippage_bps: int = 0
    total_swap_seconds: Optional[int] = None
    inbound_address: Optional[str] = None
    router: Optional[str] = None
    memo: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None

    @field_validator("expected_amount_out", mode="before")
    @classmethod
    def validate_amount_out(cls, v: Any) -> int:
        return parse_amount(v)
