"""Settlement lifecycle states and their derivation.

The state is recomputed from scratch on every poll from three observations:
the source transaction, the bridge's outbound action and the destination
transaction. Nothing is carried over except the observations themselves.

    source     bridge              destination   -> state
    pending    -                   -                SENT
    failed     -                   -                FAILED (source_failed)
    confirmed  absent / pending    -                BRIDGE_PROCESSING
    confirmed  refund / failed     -                FAILED (refunded)
    confirmed  success             none / pending   AWAITING_DESTINATION
    confirmed  success             confirmed        COMPLETED
    confirmed  success             failed           FAILED (destination_failed)
"""

from enum import Enum
from typing import Optional

from switchlyswap.bridge.actions import ActionState, BridgeAction
from switchlyswap.scanner.base import ChainTxStatus, TxState


class SettlementState(str, Enum):
    SENT = "sent"
    BRIDGE_PROCESSING = "bridge_processing"
    AWAITING_DESTINATION = "awaiting_destination"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {SettlementState.COMPLETED, SettlementState.FAILED, SettlementState.TIMEOUT}
)


class FailureReason(str, Enum):
    SOURCE_FAILED = "source_failed"
    REFUNDED = "refunded"
    DESTINATION_FAILED = "destination_failed"


def derive_state(
    source_tx: ChainTxStatus,
    bridge_action: Optional[BridgeAction] = None,
    target_tx: Optional[ChainTxStatus] = None,
) -> tuple[SettlementState, Optional[FailureReason]]:
    """Derive the settlement state from the latest observations.

    Timeout is not derived here; the session applies it from wall-clock time.
    """
    if source_tx.state == TxState.PENDING:
        return SettlementState.SENT, None
    if source_tx.state == TxState.FAILED:
        return SettlementState.FAILED, FailureReason.SOURCE_FAILED

    if bridge_action is None or bridge_action.state == ActionState.PENDING:
        return SettlementState.BRIDGE_PROCESSING, None
    if bridge_action.state == ActionState.FAILED or bridge_action.is_refund:
        return SettlementState.FAILED, FailureReason.REFUNDED

    if target_tx is None or target_tx.state == TxState.PENDING:
        return SettlementState.AWAITING_DESTINATION, None
    if target_tx.state == TxState.CONFIRMED:
        return SettlementState.COMPLETED, None
    return SettlementState.FAILED, FailureReason.DESTINATION_FAILED
