"""Exception types shared across the quote and settlement layers."""

from typing import Optional


class SwitchlyError(Exception):
    """Base class for all switchlyswap errors."""

    pass


class InvalidAssetError(SwitchlyError, ValueError):
    """Raised for a ticker that is not in the asset configuration.

    This is a programming or configuration error and is never retried.
    """

    def __init__(self, ticker: str):
        self.ticker = ticker
        super().__init__(f"Unknown asset ticker: {ticker}")


class QuoteUnavailable(SwitchlyError):
    """No liquidity for the requested pair.

    The quote engine itself returns ``None`` for this case; the exception
    exists for callers (API, CLI) that need to surface it as an error.
    """

    def __init__(self, from_asset: str, to_asset: str, reason: str = "no liquidity"):
        self.from_asset = from_asset
        self.to_asset = to_asset
        self.reason = reason
        super().__init__(f"Quote unavailable for {from_asset} -> {to_asset}: {reason}")


class ProbeTransientError(SwitchlyError):
    """Network or HTTP failure while polling a chain or the bridge.

    Retried with backoff and never treated as a settlement failure.
    """

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"{source}: {message}")


class SettlementFailed(SwitchlyError):
    """The bridge refunded the swap or the destination payout failed."""

    def __init__(self, source_hash: str, reason: str):
        self.source_hash = source_hash
        self.reason = reason
        super().__init__(f"Settlement of {source_hash} failed: {reason}")


class SettlementTimeout(SwitchlyError):
    """No terminal state was reached within the allowed window.

    The swap may still complete out-of-band.
    """

    def __init__(self, source_hash: str, elapsed_seconds: float, last_state: str):
        self.source_hash = source_hash
        self.elapsed_seconds = elapsed_seconds
        self.last_state = last_state
        super().__init__(
            f"Settlement of {source_hash} timed out after {elapsed_seconds:.0f}s "
            f"(last state: {last_state})"
        )
