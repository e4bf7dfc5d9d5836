"""
Immutable table snapshots and the pure functions derived from them.

This package provides the snapshot models decoded from ledger responses and
the side-effect free derivations (turn view, kick status) the client shows.
"""

from tablewatch.state.models import (
    DealerTurn,
    Hand,
    NoPlayers,
    Player,
    PlayerLocalState,
    PlayerScoreReport,
    PlayerTurn,
    ScoreReport,
    Table,
    TableSnapshot,
    TableState,
)
from tablewatch.state.codec import (
    decode_balance,
    decode_score_report,
    decode_table,
    encode_score_report,
    encode_table,
    fingerprint,
)
from tablewatch.state.turns import Message, TurnPhase, TurnView, derive_turn_view
from tablewatch.state.kick import SeatKickStatus, kick_status, remaining_grace

__all__ = [
    "DealerTurn",
    "Hand",
    "NoPlayers",
    "Player",
    "PlayerLocalState",
    "PlayerScoreReport",
    "PlayerTurn",
    "ScoreReport",
    "Table",
    "TableSnapshot",
    "TableState",
    "decode_balance",
    "decode_score_report",
    "decode_table",
    "encode_score_report",
    "encode_table",
    "fingerprint",
    "Message",
    "TurnPhase",
    "TurnView",
    "derive_turn_view",
    "SeatKickStatus",
    "kick_status",
    "remaining_grace",
]
