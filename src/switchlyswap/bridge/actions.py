"""Bridge-side view of a swap, read from the node's outbound queue.

An entry stays in the queue only until the outbound is signed, so absence
means either "not scheduled yet" or "already paid out". The caller keeps the
last action it saw.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from switchlyswap.bridge.client import SwitchlyClient
from switchlyswap.bridge.models import OutboundQueueItem
from switchlyswap.memo import MEMO_OUT, MEMO_REFUND, normalize_hash

logger = logging.getLogger(__name__)


class ActionType(str, Enum):
    SWAP = "swap"
    REFUND = "refund"
    PROCESSING = "processing"


class ActionState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class BridgeAction:
    """One outbound the bridge scheduled for a source transaction."""

    in_hash: str
    memo: Optional[str]
    classified_type: ActionType
    state: ActionState
    out_hash: Optional[str] = None
    to_address: Optional[str] = None
    coin_asset: Optional[str] = None
    coin_amount: Optional[str] = None
    scheduled_height: Optional[int] = None

    @property
    def is_refund(self) -> bool:
        return self.classified_type == ActionType.REFUND

    def to_dict(self) -> dict:
        return {
            "in_hash": self.in_hash,
            "out_hash": self.out_hash,
            "memo": self.memo,
            "type": self.classified_type.value,
            "state": self.state.value,
            "to_address": self.to_address,
            "coin": {"asset": self.coin_asset, "amount": self.coin_amount}
            if self.coin_asset
            else None,
            "scheduled_height": self.scheduled_height,
        }


def classify(item: OutboundQueueItem) -> tuple[ActionType, ActionState]:
    """Classify a queue entry by its memo.

    Entries without a coin are not scheduled yet and count as processing.
    """
    memo = (item.memo or "").upper()

    if item.coin is None or not item.coin.asset:
        return ActionType.PROCESSING, ActionState.PENDING
    if memo.startswith(MEMO_REFUND):
        return ActionType.REFUND, ActionState.FAILED
    if memo.startswith(MEMO_OUT):
        return ActionType.SWAP, ActionState.SUCCESS
    return ActionType.PROCESSING, ActionState.PENDING


def to_action(item: OutboundQueueItem) -> BridgeAction:
    action_type, state = classify(item)
    out_hash = item.out_hash or None
    return BridgeAction(
        in_hash=normalize_hash(item.in_hash or ""),
        memo=item.memo,
        classified_type=action_type,
        state=state,
        out_hash=out_hash,
        to_address=item.to_address,
        coin_asset=item.coin.asset if item.coin else None,
        coin_amount=item.coin.amount if item.coin else None,
        scheduled_height=item.scheduled_outbound_height,
    )


class BridgeActionProbe:
    """Finds the outbound scheduled for a source transaction."""

    def __init__(self, client: Optional[SwitchlyClient] = None):
        self.client = client or SwitchlyClient()

    async def find_action(self, source_hash: str) -> Optional[BridgeAction]:
        """Match the outbound queue on in_hash.

        Returns:
            BridgeAction, or None if the source hash is not queued

        Raises:
            ProbeTransientError: the queue could not be read
        """
        target = normalize_hash(source_hash)
        queue = await self.client.get_outbound_queue()

        for item in queue:
            if item.in_hash and normalize_hash(item.in_hash) == target:
                action = to_action(item)
                logger.debug(
                    f"Outbound for {target[:16]}...: {action.classified_type.value}/"
                    f"{action.state.value}"
                )
                return action

        return None
