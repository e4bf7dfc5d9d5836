"""
Statistics over recorded settlement verifications.

This module summarises a history of verified rounds: how often the ledger's
settlement checked out, how often players beat the dealer, and how the bank
balance moved per round.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional

import numpy as np
import scipy.stats as stats

from tablewatch.verification.storage import SQLiteSettlementStore


class AnalysisType(Enum):
    """Types of statistical analysis."""

    PASS_RATE = auto()
    PLAYER_WIN_RATE = auto()
    BLACKJACK_FREQUENCY = auto()
    BANK_DELTA = auto()


@dataclass
class ConfidenceInterval:
    """
    Represents a confidence interval with lower and upper bounds.

    Attributes:
        lower: The lower bound of the confidence interval
        upper: The upper bound of the confidence interval
        confidence: The confidence level (e.g., 0.95 for 95% confidence)
    """

    lower: float
    upper: float
    confidence: float

    def contains(self, value: float) -> bool:
        """Check if the interval contains a value."""
        return self.lower <= value <= self.upper

    def to_dict(self) -> Dict[str, float]:
        """Convert to a dictionary."""
        return {"lower": self.lower, "upper": self.upper, "confidence": self.confidence}


class SettlementStatistics:
    """
    Statistical summaries of the rounds held in a settlement store.
    """

    def __init__(self, store: SQLiteSettlementStore, confidence: float = 0.95):
        self.store = store
        self.confidence = confidence

    def _proportion(self, outcomes: List[int]) -> Dict[str, Any]:
        n = len(outcomes)
        if n == 0:
            return {
                "rate": 0.0,
                "count": 0,
                "sample_size": 0,
                "confidence_interval": ConfidenceInterval(0.0, 0.0, self.confidence).to_dict(),
            }
        rate = float(np.mean(outcomes))
        return {
            "rate": rate,
            "count": int(np.sum(outcomes)),
            "sample_size": n,
            "confidence_interval": self._proportion_interval(rate, n).to_dict(),
        }

    def _proportion_interval(self, rate: float, n: int) -> ConfidenceInterval:
        """Normal-approximation interval for a proportion, clipped to [0, 1]."""
        z = stats.norm.ppf((1 + self.confidence) / 2)
        margin = z * np.sqrt(rate * (1 - rate) / n)
        return ConfidenceInterval(
            float(max(0.0, rate - margin)), float(min(1.0, rate + margin)), self.confidence
        )

    def _mean_interval(self, values: List[float]) -> ConfidenceInterval:
        """Student-t interval for a mean; degenerate with fewer than two values."""
        mean = float(np.mean(values))
        if len(values) < 2:
            return ConfidenceInterval(mean, mean, self.confidence)
        std_err = stats.sem(values)
        margin = std_err * stats.t.ppf((1 + self.confidence) / 2, len(values) - 1)
        return ConfidenceInterval(float(mean - margin), float(mean + margin), self.confidence)

    def calculate_pass_rate(self, table_label: Optional[str] = None) -> Dict[str, Any]:
        """Fraction of stored rounds whose settlement verified."""
        rounds = self.store.get_rounds(table_label)
        return self._proportion([1 if r["passed"] else 0 for r in rounds])

    def calculate_player_win_rate(self, table_label: Optional[str] = None) -> Dict[str, Any]:
        """Fraction of settled seats where the player beat the dealer."""
        settlements = self.store.get_settlements(table_label=table_label)
        return self._proportion([0 if s["dealer_won"] else 1 for s in settlements])

    def calculate_blackjack_frequency(
        self, blackjack_score: int = 21, table_label: Optional[str] = None
    ) -> Dict[str, Any]:
        """Fraction of player wins that were paid the blackjack bonus."""
        settlements = self.store.get_settlements(table_label=table_label)
        wins = [s for s in settlements if not s["dealer_won"]]
        return self._proportion([1 if s["score"] == blackjack_score else 0 for s in wins])

    def calculate_bank_delta(self, table_label: Optional[str] = None) -> Dict[str, Any]:
        """
        Mean expected change of the bank balance per round.

        Returns:
            A dictionary with the mean, standard deviation and confidence interval
        """
        deltas = [float(r["expected_bank_delta"]) for r in self.store.get_rounds(table_label)]
        if not deltas:
            return {
                "mean": 0.0,
                "standard_deviation": 0.0,
                "total": 0.0,
                "sample_size": 0,
                "confidence_interval": ConfidenceInterval(0.0, 0.0, self.confidence).to_dict(),
            }
        return {
            "mean": float(np.mean(deltas)),
            "standard_deviation": float(np.std(deltas, ddof=1)) if len(deltas) > 1 else 0.0,
            "total": float(np.sum(deltas)),
            "sample_size": len(deltas),
            "confidence_interval": self._mean_interval(deltas).to_dict(),
        }

    def run_all_analyses(self, table_label: Optional[str] = None) -> Dict[str, Any]:
        return {
            AnalysisType.PASS_RATE.name: self.calculate_pass_rate(table_label),
            AnalysisType.PLAYER_WIN_RATE.name: self.calculate_player_win_rate(table_label),
            AnalysisType.BLACKJACK_FREQUENCY.name: self.calculate_blackjack_frequency(table_label=table_label),
            AnalysisType.BANK_DELTA.name: self.calculate_bank_delta(table_label),
        }
