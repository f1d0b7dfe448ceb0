"""Factory for chain status probes.

Supported chains:
- ETH: JSON-RPC node (receipts, router TransferOut logs)
- XLM: Stellar Horizon
"""

from switchlyswap.chains import ChainKind, get_chain, get_swap_chains
from switchlyswap.config import get_settings
from switchlyswap.scanner.base import ChainStatusProbe, SimulatedProbe

# Cache for probe instances
_probe_cache: dict[str, ChainStatusProbe] = {}


def get_probe(chain: str) -> ChainStatusProbe:
    """Get a status probe for a chain.

    Args:
        chain: Chain symbol (ETH, XLM)

    Returns:
        ChainStatusProbe for the chain

    Raises:
        ValueError: chain has no probe
    """
    chain_upper = chain.upper()

    if chain_upper in _probe_cache:
        return _probe_cache[chain_upper]

    settings = get_settings()
    config = get_chain(chain_upper)
    if config is None or config.is_settlement:
        raise ValueError(f"No status probe for chain: {chain}")

    # In dry-run mode, use an in-memory probe
    if settings.dry_run:
        probe: ChainStatusProbe = SimulatedProbe(chain_upper, chain_kind=config.kind)

    elif config.kind == ChainKind.ACCOUNT:
        from switchlyswap.scanner.evm import EthereumRpcProbe
        probe = EthereumRpcProbe()

    else:
        from switchlyswap.scanner.stellar import HorizonProbe
        probe = HorizonProbe()

    _probe_cache[chain_upper] = probe
    return probe


def get_supported_probe_chains() -> list[str]:
    """Chains with a real status probe."""
    return [chain.symbol for chain in get_swap_chains()]


def reset_probe_cache() -> None:
    """Clear probe cache (useful for testing)."""
    _probe_cache.clear()
