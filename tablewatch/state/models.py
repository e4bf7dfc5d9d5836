"""
Immutable snapshot models.

Every poll of the ledger produces a fresh `Table` (wrapped in a
`TableSnapshot`); nothing here is ever mutated in place. The table state is a
sum type of three dataclasses so callers can ``match`` on it exhaustively
instead of inspecting the shape of decoded JSON.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from tablewatch.blackjack.rules import SEAT_COUNT
from tablewatch.common.card import Card
from tablewatch.errors import MalformedSnapshotError, PreconditionError


class PlayerLocalState(Enum):
    """
    Where a seated player is within the current round.
    """

    UNSEATED = "NotPlaying"
    BID = "Bid"
    HIT = "Hit"
    HOLD = "Hold"
    STAND = "Stand"


@dataclass(frozen=True)
class Hand:
    """
    Cards dealt to a player or the dealer.

    Attributes:
        cards: Cards in the order they were dealt
        reported_total: Total the ledger stored for the hand
    """

    cards: Tuple[Card, ...] = ()
    reported_total: int = 0

    def __post_init__(self):
        # Accept any sequence but store a tuple so the hand stays hashable
        if not isinstance(self.cards, tuple):
            object.__setattr__(self, "cards", tuple(self.cards))


@dataclass(frozen=True)
class Player:
    """
    One seat at the table.

    Attributes:
        seat: Seat index in [0, 6)
        address: Occupant identity, empty string when the seat is free
        hand: The occupant's hand, None until dealt in
        state: The occupant's progress through the round
    """

    seat: int
    address: str = ""
    hand: Optional[Hand] = None
    state: PlayerLocalState = PlayerLocalState.UNSEATED

    @property
    def is_seated(self) -> bool:
        return self.address != ""


@dataclass(frozen=True)
class NoPlayers:
    """Nobody is seated; the table is idle."""


@dataclass(frozen=True)
class DealerTurn:
    """All players are resolved and the dealer is drawing."""


@dataclass(frozen=True)
class PlayerTurn:
    """
    A single seat holds the turn.

    Attributes:
        seat: The acting seat
        is_first: True until the acting player has placed a bid
        turn_start_time: Ledger time (unix seconds) the turn began
    """

    seat: int
    is_first: bool
    turn_start_time: int


TableState = Union[NoPlayers, DealerTurn, PlayerTurn]


def _empty_seats() -> Tuple[Player, ...]:
    return tuple(Player(seat=i) for i in range(SEAT_COUNT))


@dataclass(frozen=True)
class Table:
    """
    One decoded observation of the table.

    Construction checks the invariants every snapshot must satisfy: exactly
    six seats, no identity seated twice, and a `PlayerTurn` that points at an
    occupied seat.
    """

    players: Tuple[Player, ...] = field(default_factory=_empty_seats)
    dealer_hand: Optional[Hand] = None
    state: TableState = field(default_factory=NoPlayers)

    def __post_init__(self):
        if not isinstance(self.players, tuple):
            object.__setattr__(self, "players", tuple(self.players))

        if len(self.players) != SEAT_COUNT:
            raise MalformedSnapshotError(
                f"expected {SEAT_COUNT} seats, got {len(self.players)}", field="players"
            )

        seen = {}
        for index, player in enumerate(self.players):
            if player.seat != index:
                raise MalformedSnapshotError(
                    f"seat {player.seat} stored at position {index}", field="players"
                )
            if player.is_seated:
                if player.address in seen:
                    raise MalformedSnapshotError(
                        f"{player.address} seated at {seen[player.address]} and {index}",
                        field="players",
                    )
                seen[player.address] = index

        match self.state:
            case PlayerTurn(seat=seat):
                if not 0 <= seat < SEAT_COUNT:
                    raise MalformedSnapshotError(f"no such seat {seat}", field="state")
                if not self.players[seat].is_seated:
                    raise MalformedSnapshotError(
                        f"turn held by empty seat {seat}", field="state"
                    )
            case NoPlayers() | DealerTurn():
                pass
            case _:
                raise MalformedSnapshotError(f"unknown table state {self.state!r}", field="state")

    @property
    def players_count(self) -> int:
        return sum(1 for player in self.players if player.is_seated)

    def player(self, seat: int) -> Player:
        """Return the player at a seat, rejecting seats that do not exist."""
        if not isinstance(seat, int) or not 0 <= seat < SEAT_COUNT:
            raise PreconditionError(f"No such seat: {seat}")
        return self.players[seat]

    def seat_of(self, address: str) -> Optional[int]:
        """Seat occupied by an identity, or None."""
        if not address:
            return None
        for player in self.players:
            if player.address == address:
                return player.seat
        return None


@dataclass(frozen=True)
class PlayerScoreReport:
    """
    The ledger's record of how one seat fared in the last round.

    Attributes:
        address: Identity that held the seat
        won: Outcome flag exactly as stored by the ledger
        score: Final hand score
        reward: Amount the ledger paid or collected
    """

    address: str
    won: bool
    score: int
    reward: int


@dataclass(frozen=True)
class ScoreReport:
    """
    Per-seat results of the last settled round.

    Entries for seats without an active hand in that round are None.
    """

    players: Tuple[Optional[PlayerScoreReport], ...]
    dealer: PlayerScoreReport

    def __post_init__(self):
        if not isinstance(self.players, tuple):
            object.__setattr__(self, "players", tuple(self.players))
        if len(self.players) != SEAT_COUNT:
            raise MalformedSnapshotError(
                f"expected {SEAT_COUNT} score entries, got {len(self.players)}",
                field="players",
            )

    def for_seat(self, seat: int) -> Optional[PlayerScoreReport]:
        if not 0 <= seat < SEAT_COUNT:
            raise PreconditionError(f"No such seat: {seat}")
        return self.players[seat]


@dataclass(frozen=True)
class TableSnapshot:
    """
    A table observation together with the local identity's ledger balance.

    Attributes:
        table: Decoded table
        balance: Local identity's betting balance held by the ledger
        observed_at: Local clock time of the poll that produced it
    """

    table: Table
    balance: int = 0
    observed_at: float = 0.0

    @property
    def fingerprint(self) -> str:
        """Canonical serialization of the observed ledger state."""
        from tablewatch.state.codec import fingerprint

        return fingerprint(self.table, self.balance)
