"""Cross-chain swap quoting and settlement tracking for the Switchly network."""

__version__ = "0.1.0"
