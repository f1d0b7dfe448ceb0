"""Base interface for chain status probes.

A probe answers one question: what is the state of this transaction right now?
Probes keep no state between calls. A transient failure (timeout, 5xx, bad
payload) never becomes a verdict; ``probe`` hands back the caller's last known
status instead.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from switchlyswap.chains import ChainKind
from switchlyswap.config import get_settings
from switchlyswap.exceptions import ProbeTransientError
from switchlyswap.memo import MemoCorrelator

logger = logging.getLogger(__name__)


class TxState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class ChainTxStatus:
    """Observed state of a transaction on one chain."""

    hash: str
    chain_kind: ChainKind
    state: TxState = TxState.PENDING
    confirmations: Optional[int] = None
    ledger_or_block: Optional[int] = None
    timestamp: Optional[str] = None
    memo: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.state != TxState.PENDING

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "chain_kind": self.chain_kind.value,
            "state": self.state.value,
            "confirmations": self.confirmations,
            "ledger_or_block": self.ledger_or_block,
            "timestamp": self.timestamp,
        }


class ChainStatusProbe(ABC):
    """Abstract base class for per-chain transaction status lookups."""

    chain_kind: ChainKind = ChainKind.ACCOUNT

    def __init__(
        self,
        chain: str,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        correlator: Optional[MemoCorrelator] = None,
    ):
        """Initialize probe.

        Args:
            chain: Chain symbol (ETH, XLM)
            base_url: JSON-RPC or REST endpoint
            client: Shared HTTP client; a short-lived one is used per call if omitted
            timeout: Per-request timeout in seconds
            correlator: Memo matcher used by find_payout
        """
        settings = get_settings()
        self.chain = chain.upper()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.correlator = correlator or MemoCorrelator(
            prefix_length=settings.memo_prefix_length,
            suffix_length=settings.memo_suffix_length,
        )
        self._client = client

    @property
    def name(self) -> str:
        return self.chain.lower()

    def pending(self, tx_hash: str) -> ChainTxStatus:
        return ChainTxStatus(hash=tx_hash, chain_kind=self.chain_kind)

    async def probe(
        self, tx_hash: str, previous: Optional[ChainTxStatus] = None
    ) -> ChainTxStatus:
        """Current status of tx_hash.

        Args:
            tx_hash: Transaction hash on this chain
            previous: Last status the caller saw, returned on transient errors

        Returns:
            Fresh status, or previous (pending if none) when the lookup failed
        """
        try:
            return await self.fetch_status(tx_hash)
        except ProbeTransientError as e:
            logger.warning(f"{self.chain} probe for {tx_hash} failed, keeping last state: {e}")
            return previous if previous is not None else self.pending(tx_hash)

    async def find_payout(
        self, destination_address: str, source_hash: str
    ) -> Optional[ChainTxStatus]:
        """Look for the payout of source_hash sent to destination_address.

        Returns None when nothing matches yet or the lookup failed.
        """
        try:
            return await self.search_payout(destination_address, source_hash)
        except ProbeTransientError as e:
            logger.warning(f"{self.chain} payout search for {source_hash} failed: {e}")
            return None

    @abstractmethod
    async def fetch_status(self, tx_hash: str) -> ChainTxStatus:
        """Query the chain; raise ProbeTransientError on transport failure."""
        pass

    @abstractmethod
    async def search_payout(
        self, destination_address: str, source_hash: str
    ) -> Optional[ChainTxStatus]:
        """Scan recent activity at destination_address for an OUT memo."""
        pass

    @abstractmethod
    async def get_current_height(self) -> int:
        """Latest block number or ledger sequence."""
        pass

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ProbeTransientError(self.name, f"request to {url} failed: {e}") from e

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProbeTransientError(
                self.name, "invalid JSON response", status_code=response.status_code
            ) from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code != 200:
            raise ProbeTransientError(
                self.name,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class SimulatedProbe(ChainStatusProbe):
    """In-memory probe for dry runs and tests (no network access)."""

    def __init__(self, chain: str, chain_kind: ChainKind = ChainKind.ACCOUNT):
        super().__init__(chain, base_url="simulated://")
        self.chain_kind = chain_kind
        self._statuses: dict[str, ChainTxStatus] = {}
        self._payouts: dict[str, ChainTxStatus] = {}
        self._errors: list[ProbeTransientError] = []
        self._height = 1000
        self.calls = 0

    def set_status(
        self,
        tx_hash: str,
        state: TxState,
        confirmations: Optional[int] = None,
    ) -> ChainTxStatus:
        status = ChainTxStatus(
            hash=tx_hash,
            chain_kind=self.chain_kind,
            state=state,
            confirmations=confirmations,
            ledger_or_block=self._height,
            timestamp=str(int(time.time())),
        )
        self._statuses[tx_hash] = status
        return status

    def add_payout(self, destination_address: str, status: ChainTxStatus) -> None:
        self._payouts[destination_address] = status
        self._statuses[status.hash] = status

    def fail_next(self, message: str = "simulated outage") -> None:
        """Make the next lookup raise a transient error."""
        self._errors.append(ProbeTransientError(self.name, message))

    def _maybe_fail(self) -> None:
        if self._errors:
            raise self._errors.pop(0)

    async def fetch_status(self, tx_hash: str) -> ChainTxStatus:
        self.calls += 1
        self._maybe_fail()
        return self._statuses.get(tx_hash) or self.pending(tx_hash)

    async def search_payout(
        self, destination_address: str, source_hash: str
    ) -> Optional[ChainTxStatus]:
        self._maybe_fail()
        payout = self._payouts.get(destination_address)
        if payout and self.correlator.matches(payout.memo, source_hash):
            return self._statuses.get(payout.hash, payout)
        return None

    async def get_current_height(self) -> int:
        return self._height
