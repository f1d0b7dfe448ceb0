"""Stellar transaction status via the Horizon REST API.

API Docs: https://developers.stellar.org/docs/data/apis/horizon
"""

import logging
from typing import Optional

import httpx

from switchlyswap.chains import ChainKind
from switchlyswap.config import get_settings
from switchlyswap.memo import MemoCorrelator
from switchlyswap.scanner.base import ChainStatusProbe, ChainTxStatus, TxState

logger = logging.getLogger(__name__)


class HorizonProbe(ChainStatusProbe):
    """Ledger-model probe. A transaction is final once Horizon returns it."""

    chain_kind = ChainKind.LEDGER

    def __init__(
        self,
        horizon_url: Optional[str] = None,
        scan_limit: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        correlator: Optional[MemoCorrelator] = None,
    ):
        settings = get_settings()
        super().__init__(
            "XLM",
            horizon_url or settings.stellar_horizon_url,
            client=client,
            timeout=timeout,
            correlator=correlator,
        )
        self.scan_limit = scan_limit if scan_limit is not None else settings.stellar_payout_scan_limit

    def _parse_record(self, record: dict) -> ChainTxStatus:
        successful = record.get("successful", False)
        return ChainTxStatus(
            hash=record.get("hash", ""),
            chain_kind=self.chain_kind,
            state=TxState.CONFIRMED if successful else TxState.FAILED,
            confirmations=1,
            ledger_or_block=record.get("ledger"),
            timestamp=record.get("created_at"),
            memo=record.get("memo"),
        )

    async def fetch_status(self, tx_hash: str) -> ChainTxStatus:
        tx_hash = _strip_prefix(tx_hash)
        response = await self._request("GET", f"{self.base_url}/transactions/{tx_hash}")

        if response.status_code == 404:
            # Not yet included in a ledger
            return self.pending(tx_hash)

        self._raise_for_status(response)
        return self._parse_record(self._json(response))

    async def search_payout(
        self, destination_address: str, source_hash: str
    ) -> Optional[ChainTxStatus]:
        response = await self._request(
            "GET",
            f"{self.base_url}/accounts/{destination_address}/transactions",
            params={"order": "desc", "limit": self.scan_limit},
        )

        if response.status_code == 404:
            # Account not funded yet
            return None

        self._raise_for_status(response)
        records = self._json(response).get("_embedded", {}).get("records", [])

        for record in records:
            if record.get("memo_type") != "text":
                continue
            if self.correlator.matches(record.get("memo"), source_hash):
                logger.info(f"Found XLM payout {record.get('hash')} for {source_hash}")
                return self._parse_record(record)

        return None

    async def get_current_height(self) -> int:
        response = await self._request(
            "GET", f"{self.base_url}/ledgers", params={"order": "desc", "limit": 1}
        )
        self._raise_for_status(response)
        records = self._json(response).get("_embedded", {}).get("records", [])
        if not records:
            return 0
        return int(records[0].get("sequence", 0))


def _strip_prefix(tx_hash: str) -> str:
    value = tx_hash.strip()
    if value[:2].lower() == "0x":
        value = value[2:]
    return value.lower()
