"""Tests for settlement sessions and the correlator."""

import asyncio
from typing import Optional

import pytest

from switchlyswap.bridge.actions import ActionState, ActionType, BridgeAction
from switchlyswap.chains import ChainKind
from switchlyswap.exceptions import SettlementFailed, SettlementTimeout
from switchlyswap.scanner.base import ChainTxStatus, SimulatedProbe, TxState
from switchlyswap.settlement.correlator import SettlementCorrelator
from switchlyswap.settlement.state import FailureReason, SettlementState

from conftest import SOURCE_HASH, XLM_ADDRESS, FakeBridgeProbe, transient

OUT_HASH = "cd" * 32


def bridge_action(
    action_type: ActionType, state: ActionState, out_hash: Optional[str] = None
) -> BridgeAction:
    return BridgeAction(
        in_hash=SOURCE_HASH[2:].upper(),
        memo=f"{action_type.value.upper()}:{SOURCE_HASH[2:].upper()}",
        classified_type=action_type,
        state=state,
        out_hash=out_hash,
        to_address=XLM_ADDRESS,
    )


QUEUED = bridge_action(ActionType.PROCESSING, ActionState.PENDING)
PAID_OUT = bridge_action(ActionType.SWAP, ActionState.SUCCESS, out_hash=OUT_HASH)
PAID_OUT_NO_HASH = bridge_action(ActionType.SWAP, ActionState.SUCCESS)
REFUNDED = bridge_action(ActionType.REFUND, ActionState.FAILED)


class Harness:
    """Correlator over simulated ETH and XLM probes and a scripted bridge."""

    def __init__(self, settings, clock, script=None, sleep=None):
        self.eth = SimulatedProbe("ETH")
        self.xlm = SimulatedProbe("XLM", chain_kind=ChainKind.LEDGER)
        self.bridge = FakeBridgeProbe(script)
        probes = {"ETH": self.eth, "XLM": self.xlm}
        self.correlator = SettlementCorrelator(
            bridge_probe=self.bridge,
            probe_factory=lambda chain: probes[chain.upper()],
            settings=settings,
            clock=clock,
            sleep=sleep or clock.sleep,
        )

    def session(self, on_update=None):
        return self.correlator.create_session(SOURCE_HASH, "ETH", "XLM", XLM_ADDRESS, on_update)

    def confirm_source(self):
        self.eth.set_status(SOURCE_HASH, TxState.CONFIRMED, confirmations=12)


class TestSettlementSession:
    """Tests driving a session one tick at a time."""

    @pytest.mark.asyncio
    async def test_happy_path(self, settings, clock):
        harness = Harness(settings, clock, script=[None, QUEUED, PAID_OUT])
        session = harness.session()

        assert session.latest.state == SettlementState.SENT
        assert (await session.tick()).state == SettlementState.SENT

        harness.confirm_source()
        assert (await session.tick()).state == SettlementState.BRIDGE_PROCESSING

        snapshot = await session.tick()
        assert snapshot.state == SettlementState.AWAITING_DESTINATION
        assert snapshot.target_tx.state == TxState.PENDING

        harness.xlm.set_status(OUT_HASH, TxState.CONFIRMED)
        snapshot = await session.tick()
        assert snapshot.state == SettlementState.COMPLETED
        assert snapshot.target_tx.hash == OUT_HASH
        assert snapshot.polls == 4
        assert snapshot.to_dict()["state"] == "completed"
        snapshot.raise_for_outcome()

    @pytest.mark.asyncio
    async def test_terminal_snapshot_is_final(self, settings, clock):
        harness = Harness(settings, clock, script=[REFUNDED])
        harness.confirm_source()
        session = harness.session()

        first = await session.tick()
        second = await session.tick()

        assert second is first
        assert harness.bridge.calls == 1

    @pytest.mark.asyncio
    async def test_refund_fails_settlement(self, settings, clock):
        harness = Harness(settings, clock, script=[REFUNDED])
        harness.confirm_source()
        snapshot = await harness.session().tick()

        assert snapshot.state == SettlementState.FAILED
        assert snapshot.failure_reason == FailureReason.REFUNDED
        with pytest.raises(SettlementFailed) as exc_info:
            snapshot.raise_for_outcome()
        assert exc_info.value.reason == "refunded"

    @pytest.mark.asyncio
    async def test_source_failure(self, settings, clock):
        harness = Harness(settings, clock)
        harness.eth.set_status(SOURCE_HASH, TxState.FAILED)
        snapshot = await harness.session().tick()

        assert snapshot.state == SettlementState.FAILED
        assert snapshot.failure_reason == FailureReason.SOURCE_FAILED

    @pytest.mark.asyncio
    async def test_bridge_action_is_kept_after_leaving_queue(self, settings, clock):
        harness = Harness(settings, clock, script=[QUEUED, None])
        harness.confirm_source()
        session = harness.session()

        await session.tick()
        snapshot = await session.tick()

        assert snapshot.bridge_action == QUEUED
        assert snapshot.state == SettlementState.BRIDGE_PROCESSING

    @pytest.mark.asyncio
    async def test_bridge_outage_is_not_a_failure(self, settings, clock):
        harness = Harness(settings, clock, script=[transient()])
        harness.confirm_source()
        snapshot = await harness.session().tick()

        assert snapshot.state == SettlementState.BRIDGE_PROCESSING
        assert snapshot.errors == ("switchly: bridge unreachable",)
        assert not snapshot.is_terminal

    @pytest.mark.asyncio
    async def test_source_outage_keeps_last_status(self, settings, clock):
        harness = Harness(settings, clock, script=[None])
        harness.confirm_source()
        session = harness.session()

        await session.tick()
        harness.eth.fail_next()
        snapshot = await session.tick()

        assert snapshot.source_tx.state == TxState.CONFIRMED
        assert snapshot.state == SettlementState.BRIDGE_PROCESSING

    @pytest.mark.asyncio
    async def test_destination_found_by_memo(self, settings, clock):
        harness = Harness(settings, clock, script=[PAID_OUT_NO_HASH])
        harness.confirm_source()
        session = harness.session()

        assert (await session.tick()).state == SettlementState.AWAITING_DESTINATION

        harness.xlm.add_payout(
            XLM_ADDRESS,
            ChainTxStatus(
                hash="payout",
                chain_kind=ChainKind.LEDGER,
                state=TxState.CONFIRMED,
                memo=f"OUT:{SOURCE_HASH}",
            ),
        )
        snapshot = await session.tick()

        assert snapshot.state == SettlementState.COMPLETED
        assert snapshot.target_tx.hash == "payout"

    @pytest.mark.asyncio
    async def test_destination_failure(self, settings, clock):
        harness = Harness(settings, clock, script=[PAID_OUT])
        harness.confirm_source()
        harness.xlm.set_status(OUT_HASH, TxState.FAILED)
        snapshot = await harness.session().tick()

        assert snapshot.state == SettlementState.FAILED
        assert snapshot.failure_reason == FailureReason.DESTINATION_FAILED

    @pytest.mark.asyncio
    async def test_timeout(self, settings, clock):
        harness = Harness(settings, clock)
        session = harness.session()

        await session.tick()
        clock.advance(1800)
        snapshot = await session.tick()

        assert snapshot.state == SettlementState.TIMEOUT
        assert snapshot.last_state == SettlementState.SENT
        assert snapshot.elapsed_seconds == 1800
        with pytest.raises(SettlementTimeout) as exc_info:
            snapshot.raise_for_outcome()
        assert exc_info.value.last_state == "sent"

    @pytest.mark.asyncio
    async def test_callback_errors_are_ignored(self, settings, clock):
        def on_update(snapshot):
            raise RuntimeError("listener broke")

        harness = Harness(settings, clock)
        session = harness.session(on_update)
        snapshot = await session.tick()

        assert session.latest is snapshot

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self, settings, clock):
        seen = []

        async def on_update(snapshot):
            seen.append(snapshot.state)

        harness = Harness(settings, clock)
        await harness.session(on_update).tick()

        assert seen == [SettlementState.SENT]


class TestSettlementCorrelator:
    """Tests for background tracking to a terminal state."""

    @pytest.mark.asyncio
    async def test_watch_follows_poll_cadence(self, settings, clock):
        harness = Harness(settings, clock, script=[None, QUEUED, PAID_OUT])
        harness.xlm.set_status(OUT_HASH, TxState.CONFIRMED)
        states = []

        def on_update(snapshot):
            states.append(snapshot.state)
            if snapshot.state == SettlementState.SENT:
                harness.confirm_source()

        snapshot = await harness.correlator.watch(SOURCE_HASH, "ETH", "XLM", XLM_ADDRESS, on_update)

        assert snapshot.state == SettlementState.COMPLETED
        assert states == [
            SettlementState.SENT,
            SettlementState.BRIDGE_PROCESSING,
            SettlementState.COMPLETED,
        ]
        assert clock.sleeps == [2.0, 5.0]

    @pytest.mark.asyncio
    async def test_bridge_errors_back_off(self, settings, clock):
        harness = Harness(settings, clock, script=[transient(), transient(), REFUNDED])
        harness.confirm_source()

        snapshot = await harness.correlator.watch(SOURCE_HASH, "ETH", "XLM", XLM_ADDRESS)

        assert snapshot.state == SettlementState.FAILED
        assert snapshot.failure_reason == FailureReason.REFUNDED
        assert clock.sleeps == [5.0, 10.0]

    @pytest.mark.asyncio
    async def test_watch_stops_at_timeout(self, settings, clock):
        short = settings.model_copy(update={"settlement_timeout_seconds": 5.0})
        harness = Harness(short, clock)

        snapshot = await harness.correlator.watch(SOURCE_HASH, "ETH", "XLM", XLM_ADDRESS)

        assert snapshot.state == SettlementState.TIMEOUT
        assert clock.sleeps == [2.0, 2.0, 1.0]

    @pytest.mark.asyncio
    async def test_cancel_stops_updates(self, settings, clock):
        async def never_wake(delay):
            await asyncio.Event().wait()

        harness = Harness(settings, clock, sleep=never_wake)
        updates = []
        session = harness.correlator.start(
            SOURCE_HASH, "ETH", "XLM", XLM_ADDRESS, on_update=updates.append
        )
        while not updates:
            await asyncio.sleep(0)

        assert session.cancel() is True
        assert session.cancel() is False
        await session.wait()
        await session.tick()

        assert session.cancelled
        assert len(updates) == 1
        assert harness.bridge.calls == 1

    @pytest.mark.asyncio
    async def test_cancel_after_terminal_is_noop(self, settings, clock):
        harness = Harness(settings, clock, script=[REFUNDED])
        harness.confirm_source()
        updates = []
        session = harness.correlator.start(
            SOURCE_HASH, "ETH", "XLM", XLM_ADDRESS, on_update=updates.append
        )

        final = await session.wait()
        assert session.done
        assert final.state == SettlementState.FAILED

        assert session.cancel() is False
        assert session.cancel() is False
        await session.wait()

        assert not session.cancelled
        assert session.latest is final
        assert len(updates) == 1
        assert harness.bridge.calls == 1

    def test_same_chain_rejected(self, settings, clock):
        harness = Harness(settings, clock)

        with pytest.raises(ValueError):
            harness.correlator.create_session(SOURCE_HASH, "ETH", "eth", "0x" + "1" * 40)
