"""
This module defines the `Suit`, `Rank`, and `Card` types used to represent the
cards that appear in ledger snapshots.

- `Suit`: An enum representing the four suits: Hearts, Diamonds, Clubs and
Spades.

- `Rank`: An enum representing the thirteen ranks, Two through Ten, Jack,
Queen, King and Ace. Each rank knows its blackjack point value, with the Ace
counted as 1 (soft promotion is the scorer's job).

- `Card`: An immutable playing card. Cards are decoded from the ledger's
``{"value": ..., "suit": ...}`` objects with `Card.from_ledger`.
"""

from dataclasses import dataclass
from enum import Enum, unique
from typing import Any, Dict, Mapping

from tablewatch.errors import MalformedSnapshotError


@unique
class Suit(Enum):
    """
    Enum for suits in a card deck.
    """

    HEARTS = "♥"
    DIAMONDS = "♦"
    CLUBS = "♣"
    SPADES = "♠"

    @property
    def ledger_name(self) -> str:
        """Name used by the ledger's serialized cards (``"Heart"``, ...)."""
        return self.name.capitalize()[:-1]

    @classmethod
    def parse(cls, raw: str) -> "Suit":
        """Parse a suit from any of the spellings seen on the wire."""
        key = str(raw).strip().lower()
        suit = _SUIT_ALIASES.get(key)
        if suit is None:
            raise MalformedSnapshotError(f"unknown suit {raw!r}", field="suit")
        return suit

    def __str__(self) -> str:
        return self.value


@unique
class Rank(Enum):
    """
    Enum for ranks in a card deck. The value is the short symbol.
    """

    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"

    @property
    def points(self) -> int:
        """Blackjack points with the ace counted as 1."""
        if self is Rank.ACE:
            return 1
        if self in (Rank.JACK, Rank.QUEEN, Rank.KING):
            return 10
        return int(self.value)

    @property
    def ledger_name(self) -> str:
        """Name used by the ledger's serialized cards (``"Two"``, ...)."""
        return self.name.capitalize()

    @classmethod
    def parse(cls, raw: Any) -> "Rank":
        """Parse a rank from a ledger name, a short symbol or a number."""
        key = str(raw).strip().lower()
        rank = _RANK_ALIASES.get(key)
        if rank is None:
            raise MalformedSnapshotError(f"unknown card value {raw!r}", field="value")
        return rank

    def __str__(self) -> str:
        return self.value


_SUIT_ALIASES: Dict[str, Suit] = {}
for _suit in Suit:
    for _alias in (
        _suit.value,
        _suit.name.lower(),
        _suit.name.lower()[:-1],
        _suit.name.lower()[0],
    ):
        _SUIT_ALIASES[_alias] = _suit

_RANK_ALIASES: Dict[str, Rank] = {}
for _rank in Rank:
    _RANK_ALIASES[_rank.value.lower()] = _rank
    _RANK_ALIASES[_rank.name.lower()] = _rank
_RANK_ALIASES["t"] = Rank.TEN


@dataclass(frozen=True)
class Card:
    """
    An immutable playing card.

    >>> card = Card(Rank.ACE, Suit.SPADES)
    >>> print(card)
    A♠
    """

    rank: Rank
    suit: Suit

    def __post_init__(self):
        if not isinstance(self.rank, Rank):
            raise TypeError(f"Invalid rank: {self.rank}")
        if not isinstance(self.suit, Suit):
            raise TypeError(f"Invalid suit: {self.suit}")

    @property
    def is_ace(self) -> bool:
        return self.rank is Rank.ACE

    @property
    def points(self) -> int:
        return self.rank.points

    @classmethod
    def from_ledger(cls, data: Mapping[str, Any]) -> "Card":
        """
        Decode a card from the ledger's ``{"value": ..., "suit": ...}`` form.

        :param data: The decoded JSON object for one card.
        :return: The card.
        """
        if not isinstance(data, Mapping):
            raise MalformedSnapshotError(f"expected an object, got {data!r}", field="card")
        try:
            value, suit = data["value"], data["suit"]
        except KeyError as e:
            raise MalformedSnapshotError(f"missing key {e}", field="card") from e
        return cls(Rank.parse(value), Suit.parse(suit))

    @classmethod
    def of(cls, text: str) -> "Card":
        """
        Build a card from a short string such as ``"A♠"``, ``"10h"`` or ``"K"``.

        A missing suit defaults to spades, which is convenient in tests where
        only the rank matters.
        """
        text = text.strip()
        if len(text) > 1 and text[-1].lower() in _SUIT_ALIASES and text[:-1].lower() in _RANK_ALIASES:
            return cls(Rank.parse(text[:-1]), Suit.parse(text[-1]))
        return cls(Rank.parse(text), Suit.SPADES)

    def to_ledger(self) -> Dict[str, str]:
        """Encode the card in the ledger's serialized form."""
        return {"value": self.rank.ledger_name, "suit": self.suit.ledger_name}

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"
