"""Blackjack-specific pieces: actions, scoring and the client-side rules."""

from tablewatch.blackjack.action import Action
from tablewatch.blackjack.rules import TableRules, SEAT_COUNT, GRACE_SECONDS
from tablewatch.blackjack.scoring import (
    ScoreCheck,
    check_hand,
    hard_total,
    legacy_score,
    score,
)

__all__ = [
    "Action",
    "TableRules",
    "SEAT_COUNT",
    "GRACE_SECONDS",
    "ScoreCheck",
    "check_hand",
    "hard_total",
    "legacy_score",
    "score",
]
