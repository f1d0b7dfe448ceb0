"""Quote, exchange rate and swap instruction endpoints."""

from decimal import Decimal, InvalidOperation
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, field_validator

from switchlyswap.assets import get_supported_pairs, is_valid_swap_pair, validate_amount
from switchlyswap.exceptions import InvalidAssetError, ProbeTransientError, QuoteUnavailable
from switchlyswap.routing.switchly import SwitchlyQuoteProvider

router = APIRouter()


class QuoteRequest(BaseModel):
    """Request body for a swap quote."""

    from_asset: str = Field(..., min_length=3, max_length=20, description="Source ticker, e.g. ETH.ETH")
    to_asset: str = Field(..., min_length=3, max_length=20, description="Destination ticker, e.g. XLM.XLM")
    amount: str = Field(..., description="Input amount in human units, as a string")
    destination_address: Optional[str] = Field(
        None, max_length=100, description="Payout address; adds swap instructions when set"
    )

    @field_validator("from_asset", "to_asset")
    @classmethod
    def normalize_ticker(cls, v: str) -> str:
        return v.upper().strip()

    @field_validator("amount")
    @classmethod
    def validate_amount_format(cls, v: str) -> str:
        """Validate amount is a positive decimal number."""
        try:
            amount = Decimal(v)
        except InvalidOperation:
            raise ValueError(f"Invalid amount format: {v}")
        if not amount.is_finite() or amount <= 0:
            raise ValueError("Amount must be positive")
        return str(amount)


def get_provider(request: Request) -> SwitchlyQuoteProvider:
    return request.app.state.provider


@router.post("/quote")
async def create_quote(payload: QuoteRequest, request: Request):
    """Quote a swap; include inbound vault and memo if a destination is given."""
    provider = get_provider(request)

    try:
        if not is_valid_swap_pair(payload.from_asset, payload.to_asset):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Not a cross-chain pair: {payload.from_asset} -> {payload.to_asset}",
            )

        error = validate_amount(payload.from_asset, payload.amount)
        if error:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)

        quote = await provider.get_quote(
            payload.from_asset, payload.to_asset, Decimal(payload.amount)
        )
        if quote is None:
            raise QuoteUnavailable(payload.from_asset, payload.to_asset)

        result = quote.to_dict()
        if payload.destination_address:
            instructions = await provider.get_swap_instructions(
                quote, payload.destination_address
            )
            result["instructions"] = instructions.to_dict()
        return result

    except InvalidAssetError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except QuoteUnavailable as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ProbeTransientError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/rate")
async def exchange_rate(
    request: Request,
    from_asset: str = Query(..., description="Source ticker"),
    to_asset: str = Query(..., description="Destination ticker"),
):
    """Output for one unit of from_asset, after fees."""
    provider = get_provider(request)

    try:
        rate = await provider.get_exchange_rate(from_asset, to_asset)
    except InvalidAssetError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ProbeTransientError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    if rate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No rate for {from_asset.upper()} -> {to_asset.upper()}",
        )

    return {
        "from_asset": from_asset.upper(),
        "to_asset": to_asset.upper(),
        "rate": str(rate),
    }


@router.get("/pairs")
async def list_pairs():
    """All cross-chain pairs between configured assets."""
    return {
        "pairs": [{"from_asset": a, "to_asset": b} for a, b in get_supported_pairs()],
    }
