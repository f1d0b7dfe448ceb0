"""Pytest configuration and fixtures."""

import asyncio
import os
from typing import Callable, Optional

import httpx
import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["DRY_RUN"] = "false"
os.environ["SWITCHLY_API_URL"] = "http://node.test"
os.environ["SWITCHLY_MIDGARD_URL"] = "http://midgard.test"
os.environ["ETH_RPC_URL"] = "http://eth.test"
os.environ["STELLAR_HORIZON_URL"] = "http://horizon.test"

from switchlyswap.assets import get_asset
from switchlyswap.config import Settings, get_settings
from switchlyswap.exceptions import ProbeTransientError
from switchlyswap.routing.base import PoolSnapshot

get_settings.cache_clear()

ETH_ADDRESS = "0x" + "1" * 40
XLM_ADDRESS = "G" + "A" * 55
SOURCE_HASH = "0x" + "ab" * 32


class FakeClock:
    """Monotonic clock and sleep that only move when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


class FakeBridgeProbe:
    """Scripted stand-in for BridgeActionProbe.

    Each call consumes the next script entry; the last one repeats. An
    exception instance in the script is raised instead of returned.
    """

    def __init__(self, script: Optional[list] = None):
        self.script = list(script or [None])
        self.calls = 0

    async def find_action(self, source_hash: str):
        index = min(self.calls, len(self.script) - 1)
        self.calls += 1
        result = self.script[index]
        if isinstance(result, Exception):
            raise result
        return result


def transient(message: str = "bridge unreachable") -> ProbeTransientError:
    return ProbeTransientError("switchly", message)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def settings() -> Settings:
    """Settings with the default poll cadence and a short timeout."""
    return Settings(
        poll_interval_sent=2.0,
        poll_interval_bridge=5.0,
        poll_interval_destination=10.0,
        poll_error_backoff=5.0,
        poll_max_backoff=60.0,
        settlement_timeout_seconds=1800.0,
        pool_cache_seconds=15.0,
        prefer_network_quote=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def eth_pool() -> PoolSnapshot:
    """ETH pool: 10 ETH against 5 SWITCH (standardized units)."""
    return PoolSnapshot(asset=get_asset("ETH.ETH"), asset_depth=1_000_000_000, bridge_depth=500_000_000)


@pytest.fixture
def xlm_pool() -> PoolSnapshot:
    """XLM pool: 20 XLM against 5 SWITCH (standardized units)."""
    return PoolSnapshot(asset=get_asset("XLM.XLM"), asset_depth=2_000_000_000, bridge_depth=500_000_000)
