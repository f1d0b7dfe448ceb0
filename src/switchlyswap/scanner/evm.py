"""Ethereum transaction status over plain JSON-RPC.

Payouts are found through the bridge router's ``TransferOut`` event:

    event TransferOut(address indexed vault, address indexed to,
                      address asset, uint256 amount, string memo)

``to`` sits in topic 2; asset, amount and the memo are ABI-encoded in data.
"""

import logging
from typing import Any, Optional

import httpx
from Crypto.Hash import keccak

from switchlyswap.chains import ChainKind
from switchlyswap.config import get_settings
from switchlyswap.exceptions import ProbeTransientError
from switchlyswap.memo import MemoCorrelator
from switchlyswap.scanner.base import ChainStatusProbe, ChainTxStatus, TxState

logger = logging.getLogger(__name__)

TRANSFER_OUT_SIGNATURE = "TransferOut(address,address,address,uint256,string)"

WORD = 64  # hex characters per ABI word


def event_topic(signature: str) -> str:
    """keccak256 of an event signature, 0x-prefixed."""
    k = keccak.new(digest_bits=256)
    k.update(signature.encode())
    return "0x" + k.hexdigest()


TRANSFER_OUT_TOPIC = event_topic(TRANSFER_OUT_SIGNATURE)


def decode_transfer_out(log: dict) -> Optional[dict]:
    """Decode recipient, asset, amount and memo from a TransferOut log.

    Returns None for logs that do not have the expected shape.
    """
    topics = log.get("topics") or []
    data = (log.get("data") or "0x")[2:]
    if len(topics) < 3 or len(data) < 4 * WORD:
        return None

    try:
        to_address = "0x" + topics[2][-40:]
        asset = "0x" + data[WORD - 40:WORD]
        amount = int(data[WORD:2 * WORD], 16)
        offset = int(data[2 * WORD:3 * WORD], 16) * 2
        length = int(data[offset:offset + WORD], 16) * 2
        memo_hex = data[offset + WORD:offset + WORD + length]
        memo = bytes.fromhex(memo_hex).decode("utf-8", errors="replace")
    except ValueError:
        return None

    return {
        "to": to_address.lower(),
        "asset": asset.lower(),
        "amount": amount,
        "memo": memo,
    }


class EthereumRpcProbe(ChainStatusProbe):
    """Transaction status for Ethereum via eth_* JSON-RPC calls."""

    chain_kind = ChainKind.ACCOUNT

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        router_address: Optional[str] = None,
        lookback_blocks: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        correlator: Optional[MemoCorrelator] = None,
    ):
        settings = get_settings()
        super().__init__(
            "ETH",
            rpc_url or settings.eth_rpc_url,
            client=client,
            timeout=timeout,
            correlator=correlator,
        )
        self.router_address = router_address or settings.eth_router_address
        self.lookback_blocks = (
            lookback_blocks if lookback_blocks is not None else settings.eth_log_lookback_blocks
        )

    async def _rpc(self, method: str, params: list) -> Any:
        response = await self._request(
            "POST",
            self.base_url,
            json={
                "jsonrpc": "2.0",
                "method": method,
                "params": params,
                "id": 1,
            },
        )
        self._raise_for_status(response)
        data = self._json(response)
        if not isinstance(data, dict):
            raise ProbeTransientError(self.name, f"{method}: expected a JSON-RPC object")

        if "error" in data:
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ProbeTransientError(self.name, f"{method} error: {message}")

        return data.get("result")

    def _quantity(self, value: Any, what: str) -> int:
        """Parse a hex-encoded JSON-RPC quantity."""
        try:
            return int(value, 16)
        except (TypeError, ValueError) as e:
            raise ProbeTransientError(self.name, f"invalid {what}: {value!r}") from e

    async def get_current_height(self) -> int:
        result = await self._rpc("eth_blockNumber", [])
        return self._quantity(result, "block number")

    async def fetch_status(self, tx_hash: str) -> ChainTxStatus:
        tx_hash = _with_prefix(tx_hash)

        tx = await self._rpc("eth_getTransactionByHash", [tx_hash])
        if tx is None:
            # Not yet propagated to this node
            return self.pending(tx_hash)

        receipt = await self._rpc("eth_getTransactionReceipt", [tx_hash])
        if receipt is None:
            return ChainTxStatus(
                hash=tx_hash, chain_kind=self.chain_kind, state=TxState.PENDING, confirmations=0
            )
        if not isinstance(receipt, dict):
            raise ProbeTransientError(self.name, f"unexpected receipt for {tx_hash}")

        state = TxState.CONFIRMED if receipt.get("status") == "0x1" else TxState.FAILED
        block_number = self._quantity(receipt.get("blockNumber"), "receipt block number")
        head = await self.get_current_height()

        timestamp = None
        block = await self._rpc("eth_getBlockByNumber", [receipt["blockNumber"], False])
        if isinstance(block, dict) and block.get("timestamp"):
            timestamp = str(self._quantity(block["timestamp"], "block timestamp"))

        return ChainTxStatus(
            hash=tx_hash,
            chain_kind=self.chain_kind,
            state=state,
            confirmations=max(0, head - block_number),
            ledger_or_block=block_number,
            timestamp=timestamp,
        )

    async def search_payout(
        self, destination_address: str, source_hash: str
    ) -> Optional[ChainTxStatus]:
        head = await self.get_current_height()
        from_block = max(0, head - self.lookback_blocks)

        logs = await self._rpc(
            "eth_getLogs",
            [
                {
                    "address": self.router_address,
                    "fromBlock": hex(from_block),
                    "toBlock": "latest",
                    "topics": [TRANSFER_OUT_TOPIC],
                }
            ],
        )

        if logs is None:
            logs = []
        if not isinstance(logs, list):
            raise ProbeTransientError(self.name, "eth_getLogs: expected a list")

        recipient = destination_address.lower()
        for log in logs:
            if not isinstance(log, dict) or log.get("removed"):
                continue

            event = decode_transfer_out(log)
            if not event or event["to"] != recipient:
                continue
            if not self.correlator.matches(event["memo"], source_hash):
                continue

            block_number = self._quantity(log.get("blockNumber"), "log block number")
            logger.info(
                f"Found ETH payout {log['transactionHash']} for {source_hash} "
                f"in block {block_number}"
            )
            # Reverted transactions emit no logs
            return ChainTxStatus(
                hash=log["transactionHash"],
                chain_kind=self.chain_kind,
                state=TxState.CONFIRMED,
                confirmations=max(0, head - block_number),
                ledger_or_block=block_number,
                memo=event["memo"],
            )

        return None


def _with_prefix(tx_hash: str) -> str:
    value = tx_hash.strip()
    if value[:2].lower() == "0x":
        return "0x" + value[2:].lower()
    return "0x" + value.lower()
