"""Chain configuration for the chains reachable through the Switchly network.

- ETH: account-model chain, observed over JSON-RPC
- XLM: ledger-model chain, observed over the Horizon REST API
- SWITCHLY: the settlement network itself (REST only, never a swap endpoint)
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ChainKind(str, Enum):
    """How a chain's transactions are observed."""

    ACCOUNT = "account"  # JSON-RPC, receipts and block heights
    LEDGER = "ledger"  # REST, ledger sequence and success flag


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a blockchain."""

    name: str
    symbol: str
    kind: ChainKind
    address_pattern: Optional[str] = None
    is_settlement: bool = False

    def is_valid_address(self, address: str) -> bool:
        """Check an address against the chain's address format."""
        if not self.address_pattern:
            return False
        return re.fullmatch(self.address_pattern, address) is not None


# ======================
# Chain Configurations
# ======================

CHAINS: dict[str, ChainConfig] = {
    "ETH": ChainConfig(
        name="Ethereum Sepolia",
        symbol="ETH",
        kind=ChainKind.ACCOUNT,
        address_pattern=r"0x[a-fA-F0-9]{40}",
    ),
    "XLM": ChainConfig(
        name="Stellar Testnet",
        symbol="XLM",
        kind=ChainKind.LEDGER,
        address_pattern=r"G[A-Z2-7]{55}",
    ),
    "SWITCHLY": ChainConfig(
        name="Switchly Network",
        symbol="SWITCH",
        kind=ChainKind.LEDGER,
        is_settlement=True,
    ),
}


# ======================
# Helper Functions
# ======================

def get_chain(symbol: str) -> Optional[ChainConfig]:
    """Get chain configuration by symbol."""
    return CHAINS.get(symbol.upper())


def get_swap_chains() -> list[ChainConfig]:
    """Get the chains a user can swap from or to."""
    return [c for c in CHAINS.values() if not c.is_settlement]


def is_valid_address(address: str, chain_symbol: str) -> bool:
    """Check if address is valid for the given chain."""
    chain = get_chain(chain_symbol)
    return chain.is_valid_address(address) if chain else False
