"""
Kick eligibility for a stalled turn.

The seat holding the turn is immune for a grace period measured from the
ledger's turn start time. Once it has elapsed any other identity may ask the
ledger to remove the stalled player. No other seat can ever be kicked.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from tablewatch.blackjack.rules import GRACE_SECONDS, SEAT_COUNT
from tablewatch.state.models import PlayerTurn, Table


@dataclass(frozen=True)
class SeatKickStatus:
    """
    Kick status of one seat.

    Attributes:
        seat: Seat index
        eligible: Whether the local identity may kick this seat now
        remaining_seconds: Seconds left in the grace period (0 when elapsed)
    """

    seat: int
    eligible: bool = False
    remaining_seconds: int = 0


def remaining_grace(turn_start_time: float, now: float, grace_seconds: int = GRACE_SECONDS) -> int:
    """Seconds left before a turn that began at `turn_start_time` may be kicked."""
    elapsed = int(now - turn_start_time)
    return min(grace_seconds, max(0, grace_seconds - elapsed))


def kick_status(
    table: Table,
    now: float,
    identity: str = "",
    grace_seconds: int = GRACE_SECONDS,
) -> Tuple[SeatKickStatus, ...]:
    """
    Compute per-seat kick eligibility.

    Args:
        table: The observed table
        now: Current time in unix seconds, on the ledger's clock
        identity: Local identity address
        grace_seconds: Grace period granted to the acting seat

    Returns:
        One SeatKickStatus per seat, in seat order
    """
    statuses = [SeatKickStatus(seat=seat) for seat in range(SEAT_COUNT)]

    if isinstance(table.state, PlayerTurn):
        acting = table.state.seat
        my_seat: Optional[int] = table.seat_of(identity)
        remaining = remaining_grace(table.state.turn_start_time, now, grace_seconds)
        statuses[acting] = SeatKickStatus(
            seat=acting,
            eligible=remaining == 0 and my_seat != acting,
            remaining_seconds=remaining,
        )

    return tuple(statuses)
