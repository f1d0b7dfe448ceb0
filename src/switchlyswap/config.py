"""Application configuration using pydantic-settings.

Endpoints for the Switchly network, the Ethereum JSON-RPC node and the Stellar
Horizon server, plus polling cadence for settlement tracking.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    dry_run: bool = Field(
        default=False, description="Use in-memory probes instead of live chains"
    )

    # ======================
    # Switchly Network
    # ======================
    switchly_api_url: str = Field(
        default="http://127.0.0.1:1317", description="Switchly node REST URL"
    )
    switchly_midgard_url: str = Field(
        default="http://127.0.0.1:8080", description="Switchly Midgard URL"
    )
    switchly_api_prefix: str = Field(
        default="switchly", description="Path prefix of the node REST endpoints"
    )
    prefer_network_quote: bool = Field(
        default=False, description="Ask Midgard for a quote before using pool math"
    )

    # ======================
    # Chain RPC Endpoints
    # ======================
    eth_rpc_url: str = Field(
        default="https://sepolia.infura.io/v3/demo", description="Ethereum JSON-RPC URL"
    )
    eth_router_address: str = Field(
        default="0x5DB9A7629912EBF95876228C24A848de0bfB43A9",
        description="Router contract emitting TransferOut events",
    )
    eth_log_lookback_blocks: int = Field(
        default=100, description="Blocks scanned for TransferOut events"
    )
    stellar_horizon_url: str = Field(
        default="https://horizon-testnet.stellar.org", description="Stellar Horizon URL"
    )
    stellar_payout_scan_limit: int = Field(
        default=20, description="Recent account transactions scanned for OUT memos"
    )

    # ======================
    # HTTP
    # ======================
    http_timeout: float = Field(default=30.0, description="HTTP request timeout (seconds)")

    # ======================
    # Quotes
    # ======================
    quote_ttl_seconds: int = Field(default=60, description="Quote validity period")
    pool_cache_seconds: float = Field(
        default=15.0, description="How long a fetched pool book is reused"
    )

    # ======================
    # Settlement Polling
    # ======================
    poll_interval_sent: float = Field(
        default=2.0, description="Poll interval while the source tx is unconfirmed"
    )
    poll_interval_bridge: float = Field(
        default=5.0, description="Poll interval while the bridge is processing"
    )
    poll_interval_destination: float = Field(
        default=10.0, description="Poll interval while awaiting the destination payout"
    )
    poll_error_backoff: float = Field(
        default=5.0, description="First retry delay after a failed poll"
    )
    poll_max_backoff: float = Field(default=60.0, description="Retry delay cap")
    settlement_timeout_seconds: float = Field(
        default=1800.0, description="Wall-clock limit before a session times out"
    )
    settlement_history_size: int = Field(
        default=256, description="Finished settlements the API keeps for lookup"
    )

    # ======================
    # Memo Correlation
    # ======================
    memo_prefix_length: int = Field(
        default=8, description="Hex characters kept before '...' in truncated memos"
    )
    memo_suffix_length: int = Field(
        default=12, description="Hex characters kept after '...' in truncated memos"
    )

    # ======================
    # Vault fallbacks (used when inbound_addresses is unreachable)
    # ======================
    eth_vault_fallback: Optional[str] = Field(
        default="0xd58610f89265a2fb637ac40edf59141ff873b266",
        description="Ethereum vault address fallback",
    )
    eth_router_fallback: Optional[str] = Field(
        default="0xa8D1Ff3bfA490cf7890D0D2C0A2f5815744A279F",
        description="Ethereum router address fallback",
    )
    xlm_vault_fallback: Optional[str] = Field(
        default="GAKJPRDGMOXTUFAJPGKXBAQ2BHYGQ6UQ7MW6LWOZUYEVK7D4YR4OIGT4",
        description="Stellar vault address fallback",
    )
    xlm_router_fallback: Optional[str] = Field(
        default="CC7XNCYBCI2UVAE2A5TUBALEXMZXTYHLMKYOA6FSXVRT42YLR76NQR7R",
        description="Stellar router contract fallback",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_rpc_url(self, chain: str) -> str:
        """Get RPC/REST URL for a specific chain."""
        rpc_map = {
            "ETH": self.eth_rpc_url,
            "XLM": self.stellar_horizon_url,
        }
        return rpc_map.get(chain.upper(), "")

    def get_vault_fallback(self, chain: str) -> tuple[Optional[str], Optional[str]]:
        """Get (vault, router) fallback addresses for a chain."""
        fallback_map = {
            "ETH": (self.eth_vault_fallback, self.eth_router_fallback),
            "XLM": (self.xlm_vault_fallback, self.xlm_router_fallback),
        }
        return fallback_map.get(chain.upper(), (None, None))

    def get_safe_dict(self) -> dict:
        """Return settings dict with credentials redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "switchly": {
                "api": self._redact_url(self.switchly_api_url),
                "midgard": self._redact_url(self.switchly_midgard_url),
                "prefix": self.switchly_api_prefix,
                "prefer_network_quote": self.prefer_network_quote,
            },
            "chains": {
                "ETH": {
                    "rpc": self._redact_url(self.eth_rpc_url),
                    "router": self.eth_router_address,
                },
                "XLM": {"horizon": self._redact_url(self.stellar_horizon_url)},
            },
            "polling": {
                "sent": self.poll_interval_sent,
                "bridge": self.poll_interval_bridge,
                "destination": self.poll_interval_destination,
                "timeout": self.settlement_timeout_seconds,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials and API keys embedded in a URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        if "/v3/" in url:
            # Infura-style project id in the path
            base, _ = url.split("/v3/", 1)
            return f"{base}/v3/***"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
