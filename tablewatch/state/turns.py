"""
Turn derivation.

`derive_turn_view` is a pure function from a table snapshot and the local
identity to what the local player may do right now. Nothing here performs I/O;
the same table always produces the same view.

A client cannot see whether it has already acted this round. It infers that
from seat order: seats act in ascending order, so a seat below the acting seat
has had its turn and a seat above it has not.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import FrozenSet, Optional

from tablewatch.blackjack.action import Action
from tablewatch.blackjack.scoring import BLACKJACK, score
from tablewatch.state.models import (
    DealerTurn,
    NoPlayers,
    PlayerLocalState,
    PlayerTurn,
    Table,
)


class TurnPhase(Enum):
    """Where the local identity stands relative to the acting seat."""

    IDLE = auto()
    DEALER = auto()
    OBSERVING = auto()
    UP_NEXT = auto()
    WAITING_NEXT_ROUND = auto()
    AWAITING_BID = auto()
    PLAYING = auto()
    RESOLVING = auto()


class Message:
    """Messages shown to the local player."""

    TAKE_SEAT = "Take a seat"
    DEALER_ACTING = "Dealer is acting"
    OBSERVING = "Seated players are playing, wait"
    GET_READY = "Get ready, you play soon"
    WAIT_NEXT_ROUND = "Round in progress, wait for next round"
    PLACE_BET = "Place a bet or stand"
    HIT_HOLD_STAND = "Hit, hold or stand?"
    BLACKJACK = "Blackjack!"
    BUST = "Bust!"
    RESOLVING = "Waiting for the round to resolve"


NO_ACTIONS: FrozenSet[Action] = frozenset()
BID_ACTIONS: FrozenSet[Action] = frozenset({Action.BID, Action.STAND})
PLAY_ACTIONS: FrozenSet[Action] = frozenset({Action.HIT, Action.HOLD, Action.STAND})
LEAVE_ACTIONS: FrozenSet[Action] = frozenset({Action.STAND})


@dataclass(frozen=True)
class TurnView:
    """
    The local, advisory view of the table.

    Attributes:
        phase: Where the local identity stands this round
        acting_seat: Seat holding the turn, if any
        my_seat: Seat of the local identity, if seated
        display_message: Message to show; None leaves the current one in place
        legal_actions: Actions the local identity may request now
        is_my_turn: Whether the local identity holds the turn
        is_first_round: Whether the local identity still has to bid
        auto_action: Action the client should issue on its own (auto-hold)
        score: Local score of the identity's hand, if dealt in
    """

    phase: TurnPhase
    acting_seat: Optional[int] = None
    my_seat: Optional[int] = None
    display_message: Optional[str] = None
    legal_actions: FrozenSet[Action] = NO_ACTIONS
    is_my_turn: bool = False
    is_first_round: bool = False
    auto_action: Optional[Action] = None
    score: Optional[int] = None

    def allows(self, action: Action) -> bool:
        return action in self.legal_actions


def derive_turn_view(table: Table, identity: str) -> TurnView:
    """
    Derive what the local identity may do on this table.

    Rules are evaluated in order and the first match wins:

    1. Nobody seated: invite the player to sit.
    2. Dealer's turn: nobody may act.
    3. Local identity not seated: observe.
    4. Another seat holds the turn: a higher seat is up next, a lower seat
       has already played (or joined too late for this round).
    5. Our turn, first visit: bid or stand.
    6. Our turn after bidding: hit, hold or stand, holding automatically on
       21 or a bust.

    Args:
        table: The observed table
        identity: Local identity address ("" when unknown)

    Returns:
        The derived TurnView
    """
    my_seat = table.seat_of(identity)

    match table.state:
        case NoPlayers():
            return TurnView(
                phase=TurnPhase.IDLE,
                my_seat=my_seat,
                display_message=Message.TAKE_SEAT,
            )
        case DealerTurn():
            return TurnView(
                phase=TurnPhase.DEALER,
                my_seat=my_seat,
                display_message=Message.DEALER_ACTING,
            )
        case PlayerTurn(seat=acting, is_first=is_first):
            pass
        case _:
            raise TypeError(f"unknown table state {table.state!r}")

    if my_seat is None:
        return TurnView(
            phase=TurnPhase.OBSERVING,
            acting_seat=acting,
            display_message=Message.OBSERVING,
        )

    me = table.players[my_seat]
    my_score = score(me.hand.cards) if me.hand is not None else None
    can_leave = LEAVE_ACTIONS if me.state is PlayerLocalState.UNSEATED else NO_ACTIONS

    if my_seat != acting:
        if my_seat > acting:
            return TurnView(
                phase=TurnPhase.UP_NEXT,
                acting_seat=acting,
                my_seat=my_seat,
                display_message=Message.GET_READY,
                legal_actions=can_leave,
                score=my_score,
            )
        return TurnView(
            phase=TurnPhase.WAITING_NEXT_ROUND,
            acting_seat=acting,
            my_seat=my_seat,
            display_message=Message.WAIT_NEXT_ROUND if me.hand is None else None,
            legal_actions=can_leave,
            score=my_score,
        )

    if is_first:
        return TurnView(
            phase=TurnPhase.AWAITING_BID,
            acting_seat=acting,
            my_seat=my_seat,
            display_message=Message.PLACE_BET,
            legal_actions=BID_ACTIONS,
            is_my_turn=True,
            is_first_round=True,
            score=my_score,
        )

    if me.state is PlayerLocalState.HOLD:
        return TurnView(
            phase=TurnPhase.RESOLVING,
            acting_seat=acting,
            my_seat=my_seat,
            display_message=Message.RESOLVING,
            is_my_turn=True,
            score=my_score,
        )

    if my_score is not None and my_score >= BLACKJACK:
        return TurnView(
            phase=TurnPhase.RESOLVING,
            acting_seat=acting,
            my_seat=my_seat,
            display_message=Message.BLACKJACK if my_score == BLACKJACK else Message.BUST,
            is_my_turn=True,
            auto_action=Action.HOLD,
            score=my_score,
        )

    return TurnView(
        phase=TurnPhase.PLAYING,
        acting_seat=acting,
        my_seat=my_seat,
        display_message=Message.HIT_HOLD_STAND,
        legal_actions=PLAY_ACTIONS,
        is_my_turn=True,
        score=my_score,
    )
