"""Chain status probes for source and destination transactions."""

from switchlyswap.scanner.base import ChainStatusProbe, ChainTxStatus, TxState
from switchlyswap.scanner.factory import get_probe

__all__ = ["ChainStatusProbe", "ChainTxStatus", "TxState", "get_probe"]
