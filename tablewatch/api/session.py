"""
Table session API.

`TableSession` pairs a snapshot poller with the ledger's action interface. It
checks every action against the latest derived view and refuses illegal ones
before anything is sent to the ledger. The ledger remains the authority: an
action that passes the local check can still be rejected remotely, and its
effect only shows up in a later snapshot.
"""

import logging
from typing import Awaitable, Callable, Optional

from tablewatch.blackjack.action import Action
from tablewatch.blackjack.rules import SEAT_COUNT, TableRules
from tablewatch.engine.poller import SnapshotPoller, WatchUpdate
from tablewatch.errors import IllegalActionError, LedgerActionError, PreconditionError
from tablewatch.events import EventBus, EventEmitter, WatchEventType
from tablewatch.ledger.base import LedgerClient
from tablewatch.state.models import PlayerTurn, Table
from tablewatch.state.turns import TurnView

logger = logging.getLogger(__name__)


class TableSession:
    """
    Guarded access to one table on behalf of the local identity.

    Example:
        ```python
        session = TableSession(ledger)
        await session.start(wallet.address)
        await session.refresh()
        await session.sit(3)
        ...
        await session.stop()
        ```

    Attributes:
        ledger: Ledger used for queries and actions
        poller: Snapshot poller providing the latest view
        rules: Client-side table rules
        auto_hold: Whether to hold automatically on 21 or a bust
    """

    def __init__(
        self,
        ledger: LedgerClient,
        poller: Optional[SnapshotPoller] = None,
        rules: Optional[TableRules] = None,
        emitter: Optional[EventEmitter] = None,
        auto_hold: bool = True,
    ):
        self.ledger = ledger
        self.rules = rules or (poller.rules if poller else TableRules())
        self.event_bus = emitter or EventBus.get_instance()
        self.poller = poller or SnapshotPoller(ledger, self.rules, emitter=self.event_bus)
        self.auto_hold = auto_hold
        self._auto_held: Optional[str] = None
        self._unsubscribe = self.poller.subscribe(self._on_update)

    async def start(self, identity: str) -> bool:
        """Start polling as `identity`. See `SnapshotPoller.start`."""
        return self.poller.start(identity)

    async def stop(self) -> None:
        await self.poller.stop()

    def close(self) -> None:
        """Detach from the poller."""
        self._unsubscribe()

    async def refresh(self) -> Optional[WatchUpdate]:
        """Poll once right away instead of waiting for the next tick."""
        return await self.poller.tick()

    @property
    def identity(self) -> str:
        return self.poller.identity or self.ledger.identity

    @property
    def view(self) -> TurnView:
        """Turn view of the latest published snapshot."""
        if self.poller.last_update is None:
            raise PreconditionError("No snapshot observed yet")
        return self.poller.last_update.turn_view

    def _table(self) -> Table:
        if self.poller.last_snapshot is None:
            raise PreconditionError("No snapshot observed yet")
        return self.poller.last_snapshot.table

    def _reject(self, action: Action, seat: Optional[int], reason: str) -> None:
        logger.info("Refusing to %s at seat %s: %s", action.value, seat, reason)
        self.event_bus.emit(
            WatchEventType.ACTION_REJECTED,
            {"action": action.value, "seat": seat, "reason": reason, "local": True},
        )
        raise IllegalActionError(action.value, seat, reason)

    async def _send(self, action: Action, seat: int, call: Callable[[], Awaitable[None]], **extra) -> None:
        logger.debug("Sending %s for seat %s %s", action.value, seat, extra or "")
        await call()
        self.event_bus.emit(
            WatchEventType.ACTION_SENT,
            {"action": action.value, "seat": seat, "identity": self.identity, **extra},
        )

    def _my_turn_seat(self, action: Action) -> int:
        view = self.view
        if not view.allows(action):
            self._reject(
                action,
                view.my_seat,
                f"not allowed in phase {view.phase.name.lower()}",
            )
        return view.my_seat

    async def sit(self, seat: int) -> None:
        """Take an empty seat."""
        table = self._table()
        if not self.identity:
            self._reject(Action.SIT, seat, "identity not resolved")
        if not isinstance(seat, int) or not 0 <= seat < SEAT_COUNT:
            self._reject(Action.SIT, seat, "no such seat")
        if table.seat_of(self.identity) is not None:
            self._reject(Action.SIT, seat, f"already seated at {table.seat_of(self.identity)}")
        if table.players[seat].is_seated:
            self._reject(Action.SIT, seat, "seat already taken")
        await self._send(Action.SIT, seat, lambda: self.ledger.sit(seat))

    async def bid(self, amount: int) -> None:
        """Place the opening bid on our first turn of the round."""
        seat = self._my_turn_seat(Action.BID)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            self._reject(Action.BID, seat, f"amount must be a positive integer, got {amount!r}")
        limit = self.rules.max_bid(await self.ledger.get_bank_balance())
        if amount > limit:
            self._reject(Action.BID, seat, f"max bid allowed is {limit}")
        await self._send(Action.BID, seat, lambda: self.ledger.bid(seat, amount), amount=amount)

    async def hit(self) -> None:
        seat = self._my_turn_seat(Action.HIT)
        await self._send(Action.HIT, seat, lambda: self.ledger.hit(seat))

    async def hold(self) -> None:
        seat = self._my_turn_seat(Action.HOLD)
        await self._send(Action.HOLD, seat, lambda: self.ledger.hold(seat))

    async def stand(self) -> None:
        """Leave the table."""
        seat = self._my_turn_seat(Action.STAND)
        await self._send(Action.STAND, seat, lambda: self.ledger.stand(seat))

    async def kick(self, seat: int) -> None:
        """Remove the stalled player at `seat` once its grace period is over."""
        table = self._table()
        if not isinstance(seat, int) or not 0 <= seat < SEAT_COUNT:
            self._reject(Action.KICK, seat, "no such seat")
        status = self.poller.current_kick_status()[seat]
        if not status.eligible:
            if not isinstance(table.state, PlayerTurn) or table.state.seat != seat:
                reason = "seat does not hold the turn"
            elif table.seat_of(self.identity) == seat:
                reason = "cannot kick yourself"
            else:
                reason = f"grace period has {status.remaining_seconds}s left"
            self._reject(Action.KICK, seat, reason)
        target = table.players[seat].address
        await self._send(Action.KICK, seat, lambda: self.ledger.kick(seat, target), target=target)

    async def _on_update(self, update: WatchUpdate) -> None:
        view = update.turn_view
        if not self.auto_hold or view.auto_action is not Action.HOLD:
            return

        fingerprint = update.snapshot.fingerprint
        if fingerprint == self._auto_held:
            return
        self._auto_held = fingerprint

        logger.info("Holding automatically at seat %s with %s", view.my_seat, view.score)
        self.event_bus.emit(
            WatchEventType.AUTO_HOLD,
            {"seat": view.my_seat, "score": view.score, "identity": self.identity},
        )
        try:
            await self._send(Action.HOLD, view.my_seat, lambda: self.ledger.hold(view.my_seat))
        except LedgerActionError as e:
            logger.warning("Automatic hold at seat %s was rejected: %s", view.my_seat, e)
            self.event_bus.emit(
                WatchEventType.ACTION_REJECTED,
                {"action": Action.HOLD.value, "seat": view.my_seat, "reason": str(e), "local": False},
            )
