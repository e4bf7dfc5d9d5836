"""Defines the Action enum for the calls a player can make against the table ledger."""
from enum import Enum


class Action(Enum):
    """Enum for the state-mutating calls the ledger accepts."""

    SIT = "sit"
    BID = "bid"
    HIT = "hit"
    HOLD = "hold"
    STAND = "stand"
    KICK = "kick"

    def __str__(self) -> str:
        return self.value
