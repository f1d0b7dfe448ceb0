"""Memo building, parsing and settlement correlation.

Wire formats (ASCII):
    SWAP:<DEST_TICKER>:<DEST_ADDRESS>   outbound initiation, set by the signer
    OUT:<SRC_TX_HASH>                   payout for a source transaction
    REFUND:<SRC_TX_HASH>                refund of a source transaction

Explorers and the bridge may shorten the embedded hash to ``PREFIX...SUFFIX``.
Matching a truncated hash is a heuristic: two in-flight source hashes sharing
both fragments would collide. With 8 + 12 hex characters kept this is accepted.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."

MEMO_SWAP = "SWAP"
MEMO_OUT = "OUT"
MEMO_REFUND = "REFUND"


@dataclass(frozen=True)
class ParsedMemo:
    """A memo split into its action and arguments."""

    action: str
    asset: Optional[str] = None
    address: Optional[str] = None

    @property
    def payload(self) -> Optional[str]:
        """Everything after the action tag (the hash for OUT/REFUND memos)."""
        return self.asset


def build_swap_memo(dest_ticker: str, dest_address: str) -> str:
    """Build the memo that asks the bridge to swap into dest_ticker."""
    return f"{MEMO_SWAP}:{dest_ticker.upper()}:{dest_address}"


def parse_memo(memo: str) -> Optional[ParsedMemo]:
    """Parse a memo into action/asset/address parts.

    Returns None for memos without an action separator.
    """
    if not memo or ":" not in memo:
        return None

    action, _, rest = memo.strip().partition(":")
    action = action.upper()

    if action == MEMO_SWAP:
        asset, _, address = rest.partition(":")
        return ParsedMemo(action=action, asset=asset or None, address=address or None)

    return ParsedMemo(action=action, asset=rest or None)


def normalize_hash(tx_hash: str) -> str:
    """Uppercase hex without a 0x prefix."""
    value = tx_hash.strip()
    if value[:2].lower() == "0x":
        value = value[2:]
    return value.upper()


class MemoCorrelator:
    """Matches settlement memos against a known source transaction hash."""

    def __init__(
        self,
        prefix_length: int = 8,
        suffix_length: int = 12,
        tags: tuple[str, ...] = (MEMO_OUT,),
    ):
        """Initialize the correlator.

        Args:
            prefix_length: Hex characters shown before '...' when truncating
            suffix_length: Hex characters shown after '...' when truncating
            tags: Memo actions that carry a source hash worth matching
        """
        self.prefix_length = prefix_length
        self.suffix_length = suffix_length
        self.tags = tuple(t.upper() for t in tags)

    def extract_payload(self, memo: Optional[str]) -> Optional[str]:
        """Return the normalized hash part of a tagged memo, if any."""
        if not memo:
            return None

        parsed = parse_memo(memo)
        if not parsed or parsed.action not in self.tags or not parsed.payload:
            return None

        return normalize_hash(parsed.payload)

    def matches(self, candidate_memo: Optional[str], source_hash: str) -> bool:
        """Check whether a memo refers to source_hash."""
        payload = self.extract_payload(candidate_memo)
        if not payload or not source_hash:
            return False

        expected = normalize_hash(source_hash)

        if TRUNCATION_MARKER in payload:
            prefix, _, suffix = payload.partition(TRUNCATION_MARKER)
            if not prefix or not suffix:
                return False
            matched = expected.startswith(prefix) and expected.endswith(suffix)
        else:
            matched = payload == expected

        if matched:
            logger.debug(f"Memo {candidate_memo} matches source {expected[:16]}...")
        return matched

    def truncate(self, tx_hash: str) -> str:
        """Render a hash in the PREFIX...SUFFIX display form."""
        value = normalize_hash(tx_hash)
        if len(value) <= self.prefix_length + self.suffix_length:
            return value
        return f"{value[:self.prefix_length]}{TRUNCATION_MARKER}{value[-self.suffix_length:]}"
