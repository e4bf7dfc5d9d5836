"""Ledger interfaces and the adapters that implement them."""

from tablewatch.ledger.base import LedgerActions, LedgerClient, LedgerQueries
from tablewatch.ledger.callables import CallableLedger
from tablewatch.ledger.memory import InMemoryLedger, empty_score_report

__all__ = [
    "LedgerActions",
    "LedgerClient",
    "LedgerQueries",
    "CallableLedger",
    "InMemoryLedger",
    "empty_score_report",
]
