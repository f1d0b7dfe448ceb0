"""Settlement tracking across source chain, bridge and destination chain."""

from switchlyswap.settlement.correlator import (
    SettlementCorrelator,
    SettlementSession,
    SettlementSnapshot,
)
from switchlyswap.settlement.scheduler import Backoff, PollingTask
from switchlyswap.settlement.state import FailureReason, SettlementState, derive_state

__all__ = [
    "Backoff",
    "FailureReason",
    "PollingTask",
    "SettlementCorrelator",
    "SettlementSession",
    "SettlementSnapshot",
    "SettlementState",
    "derive_state",
]
