"""Conversion between human amounts and the Switchly standardized unit.

The settlement network keeps every pool balance at a fixed 10^8 scale no matter
how many decimals the asset has on its own chain (ETH 18, USDC 6, XLM 7).
Conversions into standardized units truncate toward zero so an amount is never
rounded up.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from switchlyswap.assets import AssetRef, get_asset

STANDARD_DECIMALS = 8
STANDARD_SCALE = Decimal(10) ** STANDARD_DECIMALS

AssetLike = Union[str, AssetRef]
Amount = Union[Decimal, int, str, float]


def _to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    try:
        # str() first so floats convert by their repr, not their binary value
        return Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e


def _truncate(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_DOWN))


class UnitNormalizer:
    """Converts amounts for the assets in the configuration table.

    Every method resolves the asset first, so unknown tickers raise
    ``InvalidAssetError`` before any arithmetic happens.
    """

    def to_standard_units(self, human_amount: Amount, asset: AssetLike) -> int:
        """Human amount -> integer standardized (1e8) units."""
        get_asset(asset)
        return _truncate(_to_decimal(human_amount) * STANDARD_SCALE)

    def to_human_units(self, standard_amount: Union[int, Decimal], asset: AssetLike) -> Decimal:
        """Standardized units -> human amount."""
        get_asset(asset)
        return _to_decimal(standard_amount) / STANDARD_SCALE

    def normalize_pool_balance(self, raw_balance: Amount, asset: AssetLike) -> int:
        """Scale a raw pool balance reported by the bridge to standardized units."""
        ref = get_asset(asset)
        raw = _to_decimal(raw_balance)
        shift = STANDARD_DECIMALS - ref.pool_decimals
        return _truncate(raw.scaleb(shift))

    def to_native_units(self, human_amount: Amount, asset: AssetLike) -> int:
        """Human amount -> on-chain base units (wei, stroops, ...)."""
        ref = get_asset(asset)
        return _truncate(_to_decimal(human_amount).scaleb(ref.decimals))

    def from_native_units(self, native_amount: Union[int, str], asset: AssetLike) -> Decimal:
        """On-chain base units -> human amount."""
        ref = get_asset(asset)
        return _to_decimal(native_amount).scaleb(-ref.decimals)

    def native_to_standard(self, native_amount: Union[int, str], asset: AssetLike) -> int:
        """On-chain base units -> standardized units."""
        ref = get_asset(asset)
        return _truncate(_to_decimal(native_amount).scaleb(STANDARD_DECIMALS - ref.decimals))


# Module-level convenience wrappers
_default = UnitNormalizer()


def to_standard_units(human_amount: Amount, asset: AssetLike) -> int:
    return _default.to_standard_units(human_amount, asset)


def to_human_units(standard_amount: Union[int, Decimal], asset: AssetLike) -> Decimal:
    return _default.to_human_units(standard_amount, asset)
