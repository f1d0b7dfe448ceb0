"""Settlement tracking endpoints.

Sessions live in memory on the app; restarting the server forgets them.
A session that reaches a terminal state is dropped from the live map and
its final snapshot kept in a bounded history, oldest evicted first.
"""

import logging
import re
from collections import OrderedDict

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field, field_validator

from switchlyswap.chains import get_chain, is_valid_address
from switchlyswap.memo import normalize_hash
from switchlyswap.settlement.correlator import (
    SettlementCorrelator,
    SettlementSession,
    SettlementSnapshot,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class SettlementRequest(BaseModel):
    """Request body to start tracking a settlement."""

    source_hash: str = Field(..., min_length=10, max_length=100, description="Source transaction hash")
    source_chain: str = Field(..., min_length=2, max_length=10, description="Source chain (ETH, XLM)")
    destination_chain: str = Field(..., min_length=2, max_length=10, description="Destination chain")
    destination_address: str = Field(..., min_length=10, max_length=100, description="Payout address")

    @field_validator("source_hash")
    @classmethod
    def validate_source_hash(cls, v: str) -> str:
        """Validate transaction hash format."""
        v = v.strip()
        if not re.match(r"^(0x)?[a-fA-F0-9]+$", v):
            raise ValueError("Invalid transaction hash format")
        return v

    @field_validator("source_chain", "destination_chain")
    @classmethod
    def validate_chain(cls, v: str) -> str:
        upper = v.upper().strip()
        chain = get_chain(upper)
        if chain is None or chain.is_settlement:
            raise ValueError(f"Unsupported chain: {v}")
        return upper


def get_sessions(request: Request) -> dict[str, SettlementSession]:
    return request.app.state.sessions


def get_finished(request: Request) -> "OrderedDict[str, SettlementSnapshot]":
    return request.app.state.finished


def get_correlator(request: Request) -> SettlementCorrelator:
    return request.app.state.correlator


def retire_when_terminal(request: Request, key: str):
    """Update callback that moves a session to the history once it is terminal."""
    sessions = get_sessions(request)
    finished = get_finished(request)
    limit = get_correlator(request).settings.settlement_history_size

    def on_update(snapshot: SettlementSnapshot) -> None:
        if not snapshot.is_terminal:
            return

        session = sessions.get(key)
        if session is not None and session.latest is snapshot:
            del sessions[key]

        finished[key] = snapshot
        finished.move_to_end(key)
        while len(finished) > limit:
            evicted, _ = finished.popitem(last=False)
            logger.debug(f"Dropped finished settlement {evicted} from history")

    return on_update


@router.post("/settlements", status_code=status.HTTP_201_CREATED)
async def start_settlement(payload: SettlementRequest, request: Request):
    """Start tracking a settlement, or return the existing session's snapshot."""
    key = normalize_hash(payload.source_hash)
    sessions = get_sessions(request)

    existing = sessions.get(key)
    if existing is not None and not existing.cancelled:
        return existing.latest.to_dict()

    final = get_finished(request).get(key)
    if final is not None:
        return final.to_dict()

    if not is_valid_address(payload.destination_address, payload.destination_chain):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {payload.destination_chain} address: {payload.destination_address}",
        )

    try:
        session = get_correlator(request).start(
            payload.source_hash,
            payload.source_chain,
            payload.destination_chain,
            payload.destination_address,
            on_update=retire_when_terminal(request, key),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    sessions[key] = session
    return session.latest.to_dict()


@router.get("/settlements/{source_hash}")
async def get_settlement(source_hash: str, request: Request):
    """Latest snapshot of a tracked or recently finished settlement."""
    key = normalize_hash(source_hash)
    session = get_sessions(request).get(key)
    if session is not None:
        return session.latest.to_dict()

    final = get_finished(request).get(key)
    if final is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Settlement not tracked")
    return final.to_dict()


@router.delete("/settlements/{source_hash}")
async def cancel_settlement(source_hash: str, request: Request):
    """Stop tracking a settlement, or forget a finished one."""
    key = normalize_hash(source_hash)
    session = get_sessions(request).pop(key, None)
    if session is not None:
        cancelled = session.cancel()
        return {
            "source_hash": session.source_hash,
            "cancelled": cancelled,
            "state": session.latest.state.value,
        }

    final = get_finished(request).pop(key, None)
    if final is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Settlement not tracked")
    return {"source_hash": final.source_hash, "cancelled": False, "state": final.state.value}
