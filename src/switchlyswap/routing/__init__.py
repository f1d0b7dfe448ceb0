"""Swap pricing over Switchly pools."""

from switchlyswap.routing.base import NetworkFees, PoolSnapshot, Quote, RouteProvider, SwapInstructions
from switchlyswap.routing.pool_engine import PoolQuoteEngine
from switchlyswap.routing.switchly import SwitchlyQuoteProvider

__all__ = [
    "NetworkFees",
    "PoolQuoteEngine",
    "PoolSnapshot",
    "Quote",
    "RouteProvider",
    "SwapInstructions",
    "SwitchlyQuoteProvider",
]
