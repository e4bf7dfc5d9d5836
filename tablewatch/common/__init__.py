"""Card primitives shared by the scorer and the snapshot models."""

from tablewatch.common.card import Card, Rank, Suit

__all__ = ["Card", "Rank", "Suit"]
