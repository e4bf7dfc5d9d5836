from decimal import Decimal
from typing import Any, Dict, Optional, Union

Number = Union[int, float, str, Decimal]

SEAT_COUNT = 6
GRACE_SECONDS = 300
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_BET = 10_000_000
DEFAULT_RAKE = Decimal("0.9")
DEFAULT_BLACKJACK_BONUS = Decimal("1.25")

# How the ledger reports a hand total: aces as 1 ("hard"), with one ace
# promoted to 11 when it fits ("soft"), or either ("any")
REPORTED_TOTALS = ("hard", "soft", "any")


def _decimal(value: Number) -> Decimal:
    # Going through str keeps 0.9 from turning into 0.90000000000000002220...
    return value if isinstance(value, Decimal) else Decimal(str(value))


class TableRules:
    """
    Client-side configuration for watching one table.

    None of these values are authoritative: the ledger applies its own rules.
    They describe what the client expects so that it can derive an advisory
    view and check the ledger's settlement after each round.
    """

    def __init__(
        self,
        grace_seconds: int = GRACE_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        bet_amount: int = DEFAULT_BET,
        rake: Number = DEFAULT_RAKE,
        blackjack_bonus: Number = DEFAULT_BLACKJACK_BONUS,
        blackjack_score: int = 21,
        won_flag_is_dealer_perspective: bool = True,
        max_bid_ratio: Number = Decimal("1.25"),
        reported_total: str = "hard",
    ):
        if grace_seconds < 0:
            raise ValueError(f"grace_seconds must be >= 0, got {grace_seconds}")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")
        if bet_amount <= 0:
            raise ValueError(f"bet_amount must be > 0, got {bet_amount}")
        if reported_total not in REPORTED_TOTALS:
            raise ValueError(
                f"reported_total must be one of {', '.join(REPORTED_TOTALS)}, got {reported_total!r}"
            )

        self.grace_seconds = grace_seconds
        self.poll_interval = poll_interval
        self.bet_amount = bet_amount
        self.rake = _decimal(rake)
        self.blackjack_bonus = _decimal(blackjack_bonus)
        self.blackjack_score = blackjack_score
        self.won_flag_is_dealer_perspective = won_flag_is_dealer_perspective
        self.max_bid_ratio = _decimal(max_bid_ratio)
        self.reported_total = reported_total

        if not Decimal(0) <= self.rake <= Decimal(1):
            raise ValueError(f"rake must be within [0, 1], got {self.rake}")

    def max_bid(self, bank_balance: int) -> int:
        """
        Largest bid the bank will cover.

        The bank must be able to pay every seat the blackjack bonus at once, so
        a bid may not exceed ``bank_balance / (bonus_ratio * seats)``.
        """
        return int(Decimal(bank_balance) / (self.max_bid_ratio * SEAT_COUNT))

    def to_dict(self) -> Dict[str, Any]:
        """Convert rules to a dictionary for serialization."""
        return {
            "grace_seconds": self.grace_seconds,
            "poll_interval": self.poll_interval,
            "bet_amount": self.bet_amount,
            "rake": str(self.rake),
            "blackjack_bonus": str(self.blackjack_bonus),
            "blackjack_score": self.blackjack_score,
            "won_flag_is_dealer_perspective": self.won_flag_is_dealer_perspective,
            "max_bid_ratio": str(self.max_bid_ratio),
            "reported_total": self.reported_total,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TableRules":
        """
        Build rules from a (possibly partial) dictionary.

        Raises:
            ValueError: On keys that are not rule names, or invalid values
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError(f"Rules must be an object, got {type(data).__name__}")
        unknown = sorted(set(data) - set(cls().to_dict()))
        if unknown:
            raise ValueError(f"Unknown rule(s): {', '.join(map(str, unknown))}")
        return cls(**data)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.to_dict().items())
        return f"TableRules({fields})"
