"""Settlement correlation: follows one swap from deposit to payout.

Each tick probes the source chain and the bridge's outbound queue together,
then resolves the destination transaction once the bridge reports success.
The state is derived again from those observations every time, and every
tick yields a new immutable snapshot.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

from switchlyswap.bridge.actions import ActionState, BridgeAction, BridgeActionProbe
from switchlyswap.config import Settings, get_settings
from switchlyswap.exceptions import ProbeTransientError, SettlementFailed, SettlementTimeout
from switchlyswap.scanner.base import ChainStatusProbe, ChainTxStatus, TxState
from switchlyswap.scanner.factory import get_probe
from switchlyswap.settlement.scheduler import Backoff, PollingTask, SleepFn
from switchlyswap.settlement.state import FailureReason, SettlementState, derive_state

logger = logging.getLogger(__name__)

OnUpdate = Callable[["SettlementSnapshot"], Union[None, Awaitable[None]]]
ProbeFactory = Callable[[str], ChainStatusProbe]


@dataclass(frozen=True)
class SettlementSnapshot:
    """Everything known about a settlement at one point in time."""

    source_hash: str
    source_chain: str
    destination_chain: str
    destination_address: str
    state: SettlementState
    source_tx: ChainTxStatus
    bridge_action: Optional[BridgeAction] = None
    target_tx: Optional[ChainTxStatus] = None
    failure_reason: Optional[FailureReason] = None
    last_state: Optional[SettlementState] = None  # state before a timeout
    started_at: float = 0.0
    observed_at: float = 0.0
    polls: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def elapsed_seconds(self) -> float:
        return self.observed_at - self.started_at

    def raise_for_outcome(self) -> None:
        """Raise if the settlement ended badly.

        Raises:
            SettlementFailed: source failed, refunded or destination failed
            SettlementTimeout: no terminal state within the time limit
        """
        if self.state == SettlementState.FAILED:
            reason = self.failure_reason.value if self.failure_reason else "unknown"
            raise SettlementFailed(self.source_hash, reason)
        if self.state == SettlementState.TIMEOUT:
            last = self.last_state.value if self.last_state else self.state.value
            raise SettlementTimeout(self.source_hash, self.elapsed_seconds, last)

    def to_dict(self) -> dict:
        return {
            "source_hash": self.source_hash,
            "source_chain": self.source_chain,
            "destination_chain": self.destination_chain,
            "destination_address": self.destination_address,
            "state": self.state.value,
            "failure_reason": self.failure_reason.value if self.failure_reason else None,
            "is_terminal": self.is_terminal,
            "source_tx": self.source_tx.to_dict(),
            "bridge_action": self.bridge_action.to_dict() if self.bridge_action else None,
            "target_tx": self.target_tx.to_dict() if self.target_tx else None,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "polls": self.polls,
            "errors": list(self.errors),
        }


class SettlementSession:
    """One tracked settlement. Owns its observations and its polling task."""

    def __init__(
        self,
        source_hash: str,
        source_chain: str,
        destination_chain: str,
        destination_address: str,
        source_probe: ChainStatusProbe,
        destination_probe: ChainStatusProbe,
        bridge_probe: BridgeActionProbe,
        settings: Optional[Settings] = None,
        on_update: Optional[OnUpdate] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.source_hash = source_hash
        self.source_chain = source_chain.upper()
        self.destination_chain = destination_chain.upper()
        self.destination_address = destination_address
        self.source_probe = source_probe
        self.destination_probe = destination_probe
        self.bridge_probe = bridge_probe
        self.on_update = on_update
        self._clock = clock

        self.started_at = clock()
        self._source_tx = source_probe.pending(source_hash)
        self._bridge_action: Optional[BridgeAction] = None
        self._target_tx: Optional[ChainTxStatus] = None
        self._polls = 0
        self._lock = asyncio.Lock()

        self._backoff = Backoff(
            initial=self.settings.poll_error_backoff,
            maximum=self.settings.poll_max_backoff,
        )
        self._task = PollingTask(
            self._step,
            name=f"settlement-{source_hash[:10]}",
            backoff=self._backoff,
            sleep=sleep,
        )
        self._latest = self._snapshot(SettlementState.SENT, None, errors=())

    @property
    def latest(self) -> SettlementSnapshot:
        return self._latest

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled

    @property
    def done(self) -> bool:
        return self._task.done

    def _snapshot(
        self,
        state: SettlementState,
        reason: Optional[FailureReason],
        errors: tuple[str, ...],
        last_state: Optional[SettlementState] = None,
    ) -> SettlementSnapshot:
        return SettlementSnapshot(
            source_hash=self.source_hash,
            source_chain=self.source_chain,
            destination_chain=self.destination_chain,
            destination_address=self.destination_address,
            state=state,
            source_tx=self._source_tx,
            bridge_action=self._bridge_action,
            target_tx=self._target_tx,
            failure_reason=reason,
            last_state=last_state,
            started_at=self.started_at,
            observed_at=self._clock(),
            polls=self._polls,
            errors=errors,
        )

    async def tick(self) -> SettlementSnapshot:
        """Poll once and return the new snapshot.

        Terminal snapshots are final: later ticks return them unchanged.
        """
        async with self._lock:
            if self._latest.is_terminal or self.cancelled:
                return self._latest

            elapsed = self._clock() - self.started_at
            if elapsed >= self.settings.settlement_timeout_seconds:
                last_state = self._latest.state
                logger.warning(
                    f"Settlement {self.source_hash} timed out after {elapsed:.0f}s "
                    f"in {last_state.value}"
                )
                snapshot = self._snapshot(
                    SettlementState.TIMEOUT, None, errors=(), last_state=last_state
                )
                return await self._publish(snapshot)

            self._polls += 1
            errors: list[str] = []

            source_tx, action = await asyncio.gather(
                self.source_probe.probe(self.source_hash, previous=self._source_tx),
                self._find_action(errors),
            )
            self._source_tx = source_tx
            if action is not None:
                self._bridge_action = action

            if (
                self._source_tx.state == TxState.CONFIRMED
                and self._bridge_action is not None
                and self._bridge_action.state == ActionState.SUCCESS
            ):
                self._target_tx = await self._resolve_destination(self._bridge_action)

            state, reason = derive_state(self._source_tx, self._bridge_action, self._target_tx)
            return await self._publish(self._snapshot(state, reason, errors=tuple(errors)))

    async def _find_action(self, errors: list[str]) -> Optional[BridgeAction]:
        try:
            return await self.bridge_probe.find_action(self.source_hash)
        except ProbeTransientError as e:
            logger.warning(f"Bridge lookup for {self.source_hash} failed: {e}")
            errors.append(str(e))
            return None

    async def _resolve_destination(self, action: BridgeAction) -> Optional[ChainTxStatus]:
        if action.out_hash:
            return await self.destination_probe.probe(action.out_hash, previous=self._target_tx)

        if self._target_tx is not None:
            # Found earlier by memo scan; follow that hash
            return await self.destination_probe.probe(
                self._target_tx.hash, previous=self._target_tx
            )

        return await self.destination_probe.find_payout(
            self.destination_address, self.source_hash
        )

    async def _publish(self, snapshot: SettlementSnapshot) -> SettlementSnapshot:
        previous = self._latest
        self._latest = snapshot

        if snapshot.state != previous.state:
            logger.info(
                f"Settlement {self.source_hash[:16]}...: "
                f"{previous.state.value} -> {snapshot.state.value}"
            )

        if self.on_update is not None and not self.cancelled:
            try:
                result = self.on_update(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Settlement update callback failed: {e}")

        return snapshot

    def next_delay(self, state: SettlementState) -> float:
        """Poll cadence for a non-terminal state."""
        if state == SettlementState.SENT:
            return self.settings.poll_interval_sent
        if state == SettlementState.BRIDGE_PROCESSING:
            return self.settings.poll_interval_bridge
        return self.settings.poll_interval_destination

    async def _step(self) -> Optional[float]:
        snapshot = await self.tick()
        if snapshot.is_terminal:
            return None

        if snapshot.errors:
            delay = self._backoff.next_delay()
        else:
            self._backoff.reset()
            delay = self.next_delay(snapshot.state)

        # Wake up in time to report the timeout
        remaining = self.settings.settlement_timeout_seconds - (self._clock() - self.started_at)
        return max(0.0, min(delay, remaining))

    def start(self) -> "SettlementSession":
        self._task.start()
        return self

    def cancel(self) -> bool:
        """Stop polling. Idempotent; no updates are emitted afterwards."""
        cancelled = self._task.cancel()
        if cancelled:
            logger.info(f"Settlement tracking cancelled for {self.source_hash}")
        return cancelled

    async def wait(self) -> SettlementSnapshot:
        """Wait until the session is terminal or cancelled."""
        await self._task.wait()
        return self._latest


class SettlementCorrelator:
    """Creates settlement sessions wired to the right probes."""

    def __init__(
        self,
        bridge_probe: Optional[BridgeActionProbe] = None,
        probe_factory: ProbeFactory = get_probe,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.bridge_probe = bridge_probe or BridgeActionProbe()
        self.probe_factory = probe_factory
        self._clock = clock
        self._sleep = sleep

    def create_session(
        self,
        source_hash: str,
        source_chain: str,
        destination_chain: str,
        destination_address: str,
        on_update: Optional[OnUpdate] = None,
    ) -> SettlementSession:
        """Build a session without starting it.

        Raises:
            ValueError: a chain has no status probe
        """
        if source_chain.upper() == destination_chain.upper():
            raise ValueError("Source and destination must be different chains")

        return SettlementSession(
            source_hash=source_hash.strip(),
            source_chain=source_chain,
            destination_chain=destination_chain,
            destination_address=destination_address,
            source_probe=self.probe_factory(source_chain),
            destination_probe=self.probe_factory(destination_chain),
            bridge_probe=self.bridge_probe,
            settings=self.settings,
            on_update=on_update,
            clock=self._clock,
            sleep=self._sleep,
        )

    def start(
        self,
        source_hash: str,
        source_chain: str,
        destination_chain: str,
        destination_address: str,
        on_update: Optional[OnUpdate] = None,
    ) -> SettlementSession:
        """Start tracking a settlement in the background."""
        session = self.create_session(
            source_hash, source_chain, destination_chain, destination_address, on_update
        )
        logger.info(
            f"Tracking settlement {source_hash} ({session.source_chain} -> "
            f"{session.destination_chain}, payout to {destination_address})"
        )
        return session.start()

    async def watch(
        self,
        source_hash: str,
        source_chain: str,
        destination_chain: str,
        destination_address: str,
        on_update: Optional[OnUpdate] = None,
    ) -> SettlementSnapshot:
        """Track a settlement to its terminal snapshot."""
        session = self.start(
            source_hash, source_chain, destination_chain, destination_address, on_update
        )
        try:
            return await session.wait()
        finally:
            session.cancel()
