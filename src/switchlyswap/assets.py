"""Static asset configuration keyed by ticker.

Tickers use the ``SYMBOL.CHAIN`` form (``USDC.ETH``). The bridge keys its pools
by ``CHAIN.SYMBOL`` (``ETH.USDC``); ``AssetRef.pool_asset`` gives that form.

``pool_decimals`` is the precision the bridge reports an asset's raw pool
balance in. It differs from the asset's native decimals for ETH (18 on chain,
reported at 8) and matches them for USDC on Ethereum (6) and Stellar assets (7).
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from switchlyswap.exceptions import InvalidAssetError


@dataclass(frozen=True)
class AssetRef:
    """An asset on a specific chain."""

    chain: str
    symbol: str
    decimals: int
    is_native: bool
    contract_or_issuer: Optional[str] = None
    pool_decimals: int = 8
    name: str = ""

    @property
    def ticker(self) -> str:
        return f"{self.symbol}.{self.chain}"

    @property
    def pool_asset(self) -> str:
        """Identifier the bridge uses in its pool list."""
        return f"{self.chain}.{self.symbol}"


# ======================
# Supported Assets
# ======================

SUPPORTED_ASSETS: dict[str, AssetRef] = {
    "ETH.ETH": AssetRef(
        chain="ETH",
        symbol="ETH",
        decimals=18,
        is_native=True,
        contract_or_issuer="0x0000000000000000000000000000000000000000",
        pool_decimals=8,
        name="Ethereum",
    ),
    "USDC.ETH": AssetRef(
        chain="ETH",
        symbol="USDC",
        decimals=6,
        is_native=False,
        contract_or_issuer="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",  # Sepolia
        pool_decimals=6,
        name="USD Coin",
    ),
    "XLM.XLM": AssetRef(
        chain="XLM",
        symbol="XLM",
        decimals=7,
        is_native=True,
        contract_or_issuer="CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC",
        pool_decimals=7,
        name="Stellar Lumens",
    ),
    "USDC.XLM": AssetRef(
        chain="XLM",
        symbol="USDC",
        decimals=7,
        is_native=False,
        contract_or_issuer="GA5ZSEJYB37JRC5AVCIA5MOP4RHTM335X2KGX3IHOJAPP5RE34K4KZVN",
        pool_decimals=7,
        name="USD Coin",
    ),
}

# Transaction limits in human units (min, max)
TRANSACTION_LIMITS: dict[str, tuple[Decimal, Decimal]] = {
    "ETH.ETH": (Decimal("0.01"), Decimal("10")),
    "USDC.ETH": (Decimal("0.01"), Decimal("10000")),
    "XLM.XLM": (Decimal("0.1"), Decimal("10000")),
    "USDC.XLM": (Decimal("0.01"), Decimal("10000")),
}


# ======================
# Helper Functions
# ======================

def get_asset(ticker: Union[str, AssetRef]) -> AssetRef:
    """Resolve a ticker to its AssetRef.

    Accepts either form of identifier (``USDC.ETH`` or the pool form
    ``ETH.USDC``) and passes AssetRef instances through.

    Raises:
        InvalidAssetError: ticker is not configured
    """
    if isinstance(ticker, AssetRef):
        return ticker

    key = ticker.upper()
    asset = SUPPORTED_ASSETS.get(key)
    if asset:
        return asset

    for candidate in SUPPORTED_ASSETS.values():
        if candidate.pool_asset == key:
            return candidate

    raise InvalidAssetError(ticker)


def find_asset(ticker: str) -> Optional[AssetRef]:
    """Like get_asset but returns None for unknown tickers."""
    try:
        return get_asset(ticker)
    except InvalidAssetError:
        return None


def is_valid_swap_pair(from_ticker: str, to_ticker: str) -> bool:
    """Check if two assets form a cross-chain swap pair."""
    from_asset = find_asset(from_ticker)
    to_asset = find_asset(to_ticker)

    if not from_asset or not to_asset:
        return False
    if from_asset == to_asset:
        return False

    # Must be on different chains for cross-chain swaps
    return from_asset.chain != to_asset.chain


def get_supported_pairs() -> list[tuple[str, str]]:
    """Get every cross-chain pair between configured assets."""
    tickers = list(SUPPORTED_ASSETS)
    return [(a, b) for a in tickers for b in tickers if is_valid_swap_pair(a, b)]


def validate_amount(ticker: str, amount) -> Optional[str]:
    """Validate a human amount against the asset's transaction limits.

    Returns:
        Error message, or None if the amount is acceptable
    """
    asset = get_asset(ticker)

    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return "Amount must be a positive number"

    if not value.is_finite() or value <= 0:
        return "Amount must be a positive number"

    limits = TRANSACTION_LIMITS.get(asset.ticker)
    if limits:
        minimum, maximum = limits
        if value < minimum:
            return f"Minimum amount is {minimum} {asset.symbol}"
        if value > maximum:
            return f"Maximum amount is {maximum} {asset.symbol}"

    return None
