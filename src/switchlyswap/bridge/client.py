"""REST client for the Switchly node and its Midgard indexer."""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from switchlyswap.bridge.models import (
    InboundAddress,
    NetworkResponse,
    OutboundQueueItem,
    PoolResponse,
    SwapQuoteResponse,
)
from switchlyswap.config import get_settings
from switchlyswap.exceptions import ProbeTransientError

logger = logging.getLogger(__name__)


class SwitchlyClient:
    """Read-only access to pools, network parameters and the outbound queue.

    Every failure (transport error, non-200 status, unparseable body) is
    raised as ``ProbeTransientError``; callers decide whether to retry.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        midgard_url: Optional[str] = None,
        prefix: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_url = (api_url or settings.switchly_api_url).rstrip("/")
        self.midgard_url = (midgard_url or settings.switchly_midgard_url).rstrip("/")
        self.prefix = (prefix or settings.switchly_api_prefix).strip("/")
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self._client = client

    @property
    def name(self) -> str:
        return "switchly"

    def _node_url(self, path: str) -> str:
        return f"{self.api_url}/{self.prefix}/{path}"

    async def _get_json(self, url: str, params: Optional[dict] = None) -> Any:
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ProbeTransientError(self.name, f"request to {url} failed: {e}") from e

        if response.status_code != 200:
            raise ProbeTransientError(
                self.name,
                f"{url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProbeTransientError(self.name, f"invalid JSON from {url}") from e

    async def get_pools(self) -> list[PoolResponse]:
        """All pools known to the node."""
        data = await self._get_json(self._node_url("pools"))
        return self._parse_list(data, PoolResponse, "pools")

    async def get_network(self) -> NetworkResponse:
        """Outbound fee parameters."""
        data = await self._get_json(self._node_url("network"))
        try:
            return NetworkResponse.model_validate(data)
        except ValidationError as e:
            raise ProbeTransientError(self.name, f"unexpected network payload: {e}") from e

    async def get_outbound_queue(self) -> list[OutboundQueueItem]:
        """Outbounds scheduled but not yet signed."""
        data = await self._get_json(self._node_url("queue/outbound"))
        return self._parse_list(data, OutboundQueueItem, "queue/outbound")

    async def get_inbound_addresses(self) -> list[InboundAddress]:
        """Current vault and router per chain."""
        data = await self._get_json(self._node_url("inbound_addresses"))
        return self._parse_list(data, InboundAddress, "inbound_addresses")

    async def get_swap_quote(
        self,
        from_pool_asset: str,
        to_pool_asset: str,
        amount_standard: int,
        destination: Optional[str] = None,
    ) -> Optional[SwapQuoteResponse]:
        """Ask Midgard for a quote. Returns None when it answers with an error."""
        params = {
            "from_asset": from_pool_asset,
            "to_asset": to_pool_asset,
            "amount": str(amount_standard),
        }
        if destination:
            params["destination"] = destination

        data = await self._get_json(f"{self.midgard_url}/v2/quote/swap", params=params)

        try:
            quote = SwapQuoteResponse.model_validate(data)
        except ValidationError as e:
            raise ProbeTransientError(self.name, f"unexpected quote payload: {e}") from e

        if quote.error:
            logger.warning(f"Switchly quote error: {quote.error}")
            return None
        if quote.expected_amount_out <= 0:
            return None
        return quote

    def _parse_list(self, data: Any, model, what: str) -> list:
        if not isinstance(data, list):
            raise ProbeTransientError(self.name, f"expected a list from {what}")
        items = []
        for entry in data:
            try:
                items.append(model.model_validate(entry))
            except ValidationError as e:
                logger.debug(f"Skipping malformed {what} entry: {e}")
        return items

    async def close(self) -> None:
        """Close an injected client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
