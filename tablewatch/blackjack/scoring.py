"""
Hand scoring.

The ledger reports a ``total_value`` for every hand. The functions here
recompute the score locally so the two can be compared; the local value is a
display aid and a cross-check, never a replacement for the ledger's.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Sequence

from tablewatch.common.card import Card

if TYPE_CHECKING:
    from tablewatch.state.models import Hand

logger = logging.getLogger(__name__)

BLACKJACK = 21
SOFT_BONUS = 10


def hard_total(cards: Iterable[Card]) -> int:
    """Sum of the cards with every ace counted as 1."""
    return sum(card.points for card in cards)


def score(cards: Iterable[Card]) -> int:
    """
    Score a hand with the single soft-ace rule.

    At most one ace is ever promoted from 1 to 11: promoting a second one
    would add another 10 to a total that is already above 11.

    >>> from tablewatch.common.card import Card
    >>> score([Card.of("A"), Card.of("A"), Card.of("9")])
    21
    """
    cards = list(cards)
    base = hard_total(cards)
    if base <= BLACKJACK - SOFT_BONUS and any(card.is_ace for card in cards):
        return base + SOFT_BONUS
    return base


def legacy_score(cards: Sequence[Card]) -> int:
    """
    Score a hand with the per-ace formula used by earlier table clients.

    Aces are taken one at a time as 11 unless that would bust; an ace that
    would land exactly on 21 counts as 1 when the hand holds more than one
    ace. Kept so disagreements with `score` can be reported.
    """
    total = sum(card.points for card in cards if not card.is_ace)
    aces = [card for card in cards if card.is_ace]
    for _ in aces:
        if total + 11 > BLACKJACK:
            total += 1
        elif total + 11 == BLACKJACK:
            total += 1 if len(aces) > 1 else 11
        else:
            total += 11
    return total


@dataclass(frozen=True)
class ScoreCheck:
    """
    Result of comparing a ledger hand against the local scorers.

    Attributes:
        score: Local score with the single soft-ace rule
        legacy: Local score with the per-ace formula
        hard: Total with every ace counted as 1
        reported_total: Total the ledger reported for the hand
        convention: Which local total the report must equal: "hard",
            "soft", or "any" to accept either
    """

    score: int
    legacy: int
    hard: int
    reported_total: int
    convention: str = "any"

    @property
    def reported_matches(self) -> bool:
        if self.convention == "hard":
            return self.reported_total == self.hard
        if self.convention == "soft":
            return self.reported_total == self.score
        return self.reported_total in (self.hard, self.score)

    @property
    def formulas_agree(self) -> bool:
        return self.score == self.legacy

    @property
    def ok(self) -> bool:
        return self.reported_matches and self.formulas_agree


def check_hand(hand: "Hand", convention: str = "any") -> ScoreCheck:
    """
    Score a hand every way we know and flag any disagreement.

    `convention` pins how the ledger reports totals (see
    `TableRules.reported_total`); with "any" a ledger that mixes hard and
    soft totals from hand to hand is never flagged.
    """
    check = ScoreCheck(
        score=score(hand.cards),
        legacy=legacy_score(hand.cards),
        hard=hard_total(hand.cards),
        reported_total=hand.reported_total,
        convention=convention,
    )
    if not check.reported_matches:
        logger.warning(
            "Ledger total %d does not match the %s total (hard %d, score %d) for %s",
            check.reported_total,
            check.convention,
            check.hard,
            check.score,
            " ".join(str(card) for card in hand.cards),
        )
    if not check.formulas_agree:
        logger.info(
            "Scoring formulas disagree for %s: soft-ace %d, per-ace %d",
            " ".join(str(card) for card in hand.cards),
            check.score,
            check.legacy,
        )
    return check
