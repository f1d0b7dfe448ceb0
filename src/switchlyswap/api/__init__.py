"""HTTP API for quotes and settlement tracking."""
