"""
Tests for the snapshot poller.
"""

import asyncio
import pytest

from tablewatch.blackjack.rules import TableRules
from tablewatch.common.card import Card
from tablewatch.engine.poller import SnapshotPoller, derive_update
from tablewatch.errors import LedgerQueryError, PreconditionError
from tablewatch.events import EventBus, WatchEventType
from tablewatch.ledger.memory import InMemoryLedger
from tablewatch.state.models import (
    DealerTurn,
    Hand,
    Player,
    PlayerLocalState,
    PlayerTurn,
    Table,
    TableSnapshot,
)
from tablewatch.state.turns import TurnPhase

ALICE = "wasm1alice"
BOB = "wasm1bob"
START = 1_700_000_000


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now


async def fake_sleep(seconds):
    await asyncio.sleep(0)


def two_seat_table(acting=3, is_first=True, alice_hand=None, alice_state=PlayerLocalState.UNSEATED):
    players = [Player(seat=i) for i in range(6)]
    players[3] = Player(seat=3, address=ALICE, hand=alice_hand, state=alice_state)
    players[5] = Player(seat=5, address=BOB)
    return Table(
        players=tuple(players),
        state=PlayerTurn(seat=acting, is_first=is_first, turn_start_time=START),
    )


@pytest.fixture
def ledger():
    return InMemoryLedger(identity=BOB, table=two_seat_table())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def poller(ledger, clock):
    return SnapshotPoller(ledger, clock=clock, sleep=fake_sleep)


def collect(event_type):
    received = []
    EventBus.get_instance().on(event_type, received.append)
    return received


def test_start_requires_resolved_identity(poller):
    assert poller.start("") is False
    assert not poller.running


def test_start_requires_transport_identity(poller):
    assert poller.start(ALICE) is False
    assert not poller.running


@pytest.mark.asyncio
async def test_start_and_stop(poller):
    started = collect(WatchEventType.POLLER_STARTED)
    stopped = collect(WatchEventType.POLLER_STOPPED)

    assert poller.start(BOB) is True
    assert poller.running
    assert poller.start(BOB) is True
    await poller.stop()

    assert not poller.running
    assert len(started) == 1
    assert started[0]["identity"] == BOB
    assert len(stopped) == 1


@pytest.mark.asyncio
async def test_switching_identity_requires_stop(poller, ledger):
    poller.start(BOB)
    ledger.bind(ALICE)
    try:
        with pytest.raises(PreconditionError):
            poller.start(ALICE)
    finally:
        await poller.stop()
    assert poller.start(ALICE) is True
    await poller.stop()


@pytest.mark.asyncio
async def test_tick_publishes_derived_view(poller, ledger):
    ledger.user_balances[BOB] = 7
    poller.identity = BOB

    update = await poller.tick()

    assert update is not None
    assert update.snapshot.balance == 7
    assert update.snapshot.observed_at == START
    assert update.turn_view.phase is TurnPhase.UP_NEXT
    assert not update.turn_view.is_my_turn
    assert len(update.kick_status) == 6
    assert poller.last_update is update


@pytest.mark.asyncio
async def test_identical_snapshots_publish_once(poller, clock):
    received = []
    poller.subscribe(received.append)
    updates = collect(WatchEventType.SNAPSHOT_UPDATED)

    first = await poller.tick()
    clock.now += 5
    second = await poller.tick()

    assert first is not None
    assert second is None
    assert received == [first]
    assert len(updates) == 1
    assert poller.last_snapshot.observed_at == START + 5


@pytest.mark.asyncio
async def test_changed_table_publishes_turn_change(poller, ledger):
    poller.identity = BOB
    turns = collect(WatchEventType.TURN_CHANGED)

    await poller.tick()
    ledger.table = two_seat_table(acting=5, alice_hand=Hand((Card.of("10"), Card.of("9")), 19), alice_state=PlayerLocalState.HOLD)
    update = await poller.tick()

    assert update.turn_view.is_my_turn
    assert update.turn_view.is_first_round
    assert [t["acting_seat"] for t in turns] == [3, 5]


@pytest.mark.asyncio
async def test_async_subscribers_are_awaited(poller):
    seen = []

    async def subscriber(update):
        await asyncio.sleep(0)
        seen.append(update)

    unsubscribe = poller.subscribe(subscriber)
    update = await poller.tick()
    assert seen == [update]

    unsubscribe()
    poller._fingerprint = None
    await poller.tick()
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_break_tick(poller):
    def subscriber(update):
        raise RuntimeError("render failed")

    poller.subscribe(subscriber)
    assert await poller.tick() is not None


@pytest.mark.asyncio
async def test_query_failure_propagates_and_keeps_last_view(poller, ledger):
    first = await poller.tick()
    ledger.fail_next("get_table")

    with pytest.raises(LedgerQueryError):
        await poller.tick()
    assert poller.last_update is first


@pytest.mark.asyncio
async def test_background_failures_are_published(poller, ledger):
    failures = collect(WatchEventType.POLL_FAILED)
    ledger.fail_next("get_table")

    poller.start(BOB)
    for _ in range(200):
        if failures and poller.last_update is not None:
            break
        await asyncio.sleep(0)
    await poller.stop()

    assert len(failures) == 1
    assert "get_table" in failures[0]["error"]
    assert poller.last_update is not None


@pytest.mark.asyncio
async def test_score_mismatch_is_published(poller, ledger):
    mismatches = collect(WatchEventType.SCORE_MISMATCH)
    ledger.table = two_seat_table(
        acting=3,
        is_first=False,
        alice_hand=Hand((Card.of("10"), Card.of("9")), reported_total=20),
        alice_state=PlayerLocalState.BID,
    )
    update = await poller.tick()

    assert [where for where, _ in update.score_mismatches] == ["seat 3"]
    assert mismatches[0]["reported_total"] == 20


@pytest.mark.asyncio
async def test_current_kick_status_follows_clock(poller, clock):
    poller.identity = BOB
    await poller.tick()
    assert not poller.current_kick_status()[3].eligible

    clock.now = START + 301
    assert poller.current_kick_status()[3].eligible
    assert poller.current_kick_status(now=START + 10)[3].remaining_seconds == 290


def test_kick_status_needs_a_snapshot(poller):
    with pytest.raises(PreconditionError):
        poller.current_kick_status()


def test_derive_update_is_idempotent():
    snapshot = TableSnapshot(two_seat_table(), balance=0, observed_at=START + 10)
    assert derive_update(snapshot, BOB) == derive_update(snapshot, BOB)


def test_derive_update_uses_rules_grace():
    snapshot = TableSnapshot(two_seat_table(), observed_at=START + 61)
    update = derive_update(snapshot, BOB, TableRules(grace_seconds=60))
    assert update.kick_status[3].eligible


def test_derive_update_uses_rules_reported_total():
    soft_report = two_seat_table(
        is_first=False,
        alice_hand=Hand((Card.of("A"), Card.of("K")), reported_total=21),
        alice_state=PlayerLocalState.BID,
    )
    snapshot = TableSnapshot(soft_report, observed_at=START)

    assert [where for where, _ in derive_update(snapshot, BOB).score_mismatches] == ["seat 3"]
    assert derive_update(snapshot, BOB, TableRules(reported_total="soft")).score_mismatches == []


def test_dealer_turn_view():
    players = [Player(seat=i) for i in range(6)]
    players[0] = Player(seat=0, address=BOB, state=PlayerLocalState.HOLD)
    snapshot = TableSnapshot(Table(players=tuple(players), state=DealerTurn()))
    assert derive_update(snapshot, BOB).turn_view.phase is TurnPhase.DEALER


class HeldLedger(InMemoryLedger):
    """Holds the first table query until released."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self._held = False

    async def get_table(self):
        table = await super().get_table()
        if not self._held:
            self._held = True
            self.entered.set()
            await self.release.wait()
        return table


@pytest.mark.asyncio
async def test_overlapping_ticks_publish_in_poll_order(clock):
    ledger = HeldLedger(identity=BOB, table=two_seat_table(acting=3))
    poller = SnapshotPoller(ledger, clock=clock, sleep=fake_sleep)
    poller.identity = BOB
    published = []
    poller.subscribe(lambda update: published.append(update.turn_view.acting_seat))

    first = asyncio.create_task(poller.tick())
    await ledger.entered.wait()
    ledger.table = two_seat_table(
        acting=5,
        alice_hand=Hand((Card.of("10"), Card.of("9")), 19),
        alice_state=PlayerLocalState.HOLD,
    )
    second = asyncio.create_task(poller.tick())
    await asyncio.sleep(0)
    ledger.release.set()
    await asyncio.gather(first, second)

    assert published == [3, 5]
    assert poller.last_update.turn_view.acting_seat == 5
    assert poller.last_snapshot.table.state.seat == 5
