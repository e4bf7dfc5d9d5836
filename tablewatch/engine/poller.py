"""
Snapshot poller.

The poller is the only active component of the client. On each tick it asks
the ledger for the table and the local identity's balance, wraps them in a
fresh `TableSnapshot`, and, when the snapshot differs from the previous one,
derives the turn view and kick status and publishes them.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from tablewatch.blackjack.rules import TableRules
from tablewatch.blackjack.scoring import ScoreCheck, check_hand
from tablewatch.engine.scheduler import PollScheduler, Sleep
from tablewatch.errors import PreconditionError
from tablewatch.events import EventBus, EventEmitter, WatchEventType
from tablewatch.ledger.base import LedgerQueries
from tablewatch.state.kick import SeatKickStatus, kick_status
from tablewatch.state.models import TableSnapshot
from tablewatch.state.turns import TurnView, derive_turn_view

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Subscriber = Callable[["WatchUpdate"], Any]


@dataclass(frozen=True)
class WatchUpdate:
    """
    Everything derived from one new snapshot.

    Attributes:
        snapshot: The snapshot the update was derived from
        turn_view: Local turn view
        kick_status: Per-seat kick status at observation time
        player_checks: Score cross-check per seat (None for seats without a hand)
        dealer_check: Score cross-check of the dealer's hand, if dealt
    """

    snapshot: TableSnapshot
    turn_view: TurnView
    kick_status: Tuple[SeatKickStatus, ...]
    player_checks: Tuple[Optional[ScoreCheck], ...] = ()
    dealer_check: Optional[ScoreCheck] = None

    @property
    def score_mismatches(self) -> List[Tuple[str, ScoreCheck]]:
        found = [
            (f"seat {seat}", check)
            for seat, check in enumerate(self.player_checks)
            if check is not None and not check.ok
        ]
        if self.dealer_check is not None and not self.dealer_check.ok:
            found.append(("dealer", self.dealer_check))
        return found


def derive_update(
    snapshot: TableSnapshot, identity: str, rules: Optional[TableRules] = None
) -> WatchUpdate:
    """Derive the published view of a snapshot. Pure; used by the poller."""
    rules = rules or TableRules()
    table = snapshot.table
    return WatchUpdate(
        snapshot=snapshot,
        turn_view=derive_turn_view(table, identity),
        kick_status=kick_status(
            table, snapshot.observed_at, identity, rules.grace_seconds
        ),
        player_checks=tuple(
            check_hand(player.hand, rules.reported_total) if player.hand is not None else None
            for player in table.players
        ),
        dealer_check=(
            check_hand(table.dealer_hand, rules.reported_total)
            if table.dealer_hand is not None
            else None
        ),
    )


class SnapshotPoller:
    """
    Periodically polls the ledger and publishes changed snapshots.

    Example:
        ```python
        poller = SnapshotPoller(ledger, clock=time.time)
        poller.subscribe(lambda update: render(update.turn_view))
        poller.start(wallet.address)
        ...
        await poller.stop()
        ```

    Attributes:
        ledger: Source of table and balance queries
        rules: Client-side table rules (grace period, poll interval)
        identity: Identity the poller was started with
        last_snapshot: Most recent snapshot, published or not
        last_update: Most recently published update
    """

    def __init__(
        self,
        ledger: LedgerQueries,
        rules: Optional[TableRules] = None,
        clock: Clock = time.time,
        sleep: Sleep = asyncio.sleep,
        emitter: Optional[EventEmitter] = None,
        stop_on_error: bool = False,
    ):
        self.ledger = ledger
        self.rules = rules or TableRules()
        self.identity = ""
        self.last_snapshot: Optional[TableSnapshot] = None
        self.last_update: Optional[WatchUpdate] = None
        self.event_bus = emitter or EventBus.get_instance()
        self._clock = clock
        self._fingerprint: Optional[str] = None
        self._subscribers: List[Subscriber] = []
        # One tick at a time, so snapshots are published in poll order
        self._tick_lock = asyncio.Lock()
        self._scheduler = PollScheduler(
            self.rules.poll_interval,
            sleep=sleep,
            on_error=self._on_tick_error,
            stop_on_error=stop_on_error,
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Receive every published update. Callbacks may be coroutine functions.

        Returns:
            Unsubscribe function
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def start(self, identity: str) -> bool:
        """
        Start polling on behalf of `identity`.

        Polling only starts once the identity is resolved and matches the
        identity the ledger transport is bound to; before the wallet
        handshake completes this returns False and nothing is scheduled.

        Returns:
            True if the poller is running for `identity`
        """
        if not identity:
            logger.debug("Not starting poller: identity not resolved")
            return False
        if identity != self.ledger.identity:
            logger.info(
                "Not starting poller: identity %s does not match transport identity %s",
                identity,
                self.ledger.identity or "<unbound>",
            )
            return False
        if self.running:
            if identity == self.identity:
                return True
            raise PreconditionError(
                f"Poller already running for {self.identity}; stop it before switching to {identity}"
            )

        if identity != self.identity:
            # A new identity sees the same table differently
            self._fingerprint = None
        self.identity = identity
        self._scheduler.start(self.tick)
        logger.info("Polling table every %ss as %s", self.rules.poll_interval, identity)
        self.event_bus.emit(
            WatchEventType.POLLER_STARTED,
            {"identity": identity, "interval": self.rules.poll_interval},
        )
        return True

    async def stop(self) -> None:
        """Stop polling. Safe to call when not running."""
        was_running = self.running
        await self._scheduler.stop()
        if was_running:
            logger.info("Stopped polling as %s", self.identity)
            self.event_bus.emit(
                WatchEventType.POLLER_STOPPED,
                {"identity": self.identity, "ticks": self._scheduler.ticks},
            )

    async def tick(self) -> Optional[WatchUpdate]:
        """
        Poll the ledger once.

        Query failures propagate to the caller unchanged; the previous
        snapshot stays in place. Overlapping calls (a manual refresh during
        a scheduled tick) run one after the other.

        Returns:
            The published update, or None if nothing changed
        """
        async with self._tick_lock:
            return await self._tick()

    async def _tick(self) -> Optional[WatchUpdate]:
        table = await self.ledger.get_table()
        balance = (
            await self.ledger.get_user_balance(self.identity) if self.identity else 0
        )
        snapshot = TableSnapshot(table=table, balance=balance, observed_at=self._clock())
        self.last_snapshot = snapshot

        fingerprint = snapshot.fingerprint
        if fingerprint == self._fingerprint:
            return None
        self._fingerprint = fingerprint

        previous = self.last_update
        update = derive_update(snapshot, self.identity, self.rules)
        self.last_update = update
        await self._publish(update, previous)
        return update

    def current_kick_status(self, now: Optional[float] = None) -> Tuple[SeatKickStatus, ...]:
        """
        Kick status of the latest snapshot at `now` (defaults to the clock).

        The grace period keeps running between polls even when the table
        does not change, so callers recompute it rather than reading the
        status captured in the last update.
        """
        if self.last_snapshot is None:
            raise PreconditionError("No snapshot observed yet")
        return kick_status(
            self.last_snapshot.table,
            self._clock() if now is None else now,
            self.identity,
            self.rules.grace_seconds,
        )

    async def _publish(self, update: WatchUpdate, previous: Optional[WatchUpdate]) -> None:
        view = update.turn_view
        logger.debug(
            "Snapshot changed: phase=%s acting=%s legal=%s",
            view.phase.name,
            view.acting_seat,
            sorted(a.value for a in view.legal_actions),
        )

        for where, check in update.score_mismatches:
            self.event_bus.emit(
                WatchEventType.SCORE_MISMATCH,
                {
                    "where": where,
                    "score": check.score,
                    "legacy": check.legacy,
                    "hard": check.hard,
                    "reported_total": check.reported_total,
                },
            )

        if previous is None or (
            previous.turn_view.phase,
            previous.turn_view.acting_seat,
        ) != (view.phase, view.acting_seat):
            self.event_bus.emit(
                WatchEventType.TURN_CHANGED,
                {
                    "identity": self.identity,
                    "phase": view.phase.name,
                    "acting_seat": view.acting_seat,
                    "is_my_turn": view.is_my_turn,
                },
            )

        self.event_bus.emit(
            WatchEventType.SNAPSHOT_UPDATED,
            {"identity": self.identity, "update": update},
        )

        for callback in list(self._subscribers):
            try:
                result = callback(update)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in snapshot subscriber: {e}", exc_info=True)

    def _on_tick_error(self, error: Exception) -> None:
        logger.warning("Poll failed, view is stale: %s", error)
        self.event_bus.emit(
            WatchEventType.POLL_FAILED,
            {"identity": self.identity, "error": str(error)},
        )
