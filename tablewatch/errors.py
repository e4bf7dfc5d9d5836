"""
Error taxonomy for tablewatch.

Three families of failure are distinguished:

- ``LedgerQueryError``: the ledger could not be reached or answered with
  something that cannot be decoded. Propagated to the caller, never retried.
- ``PreconditionError``: an operation was asked to work on inputs it cannot
  work on (a missing score report, an unknown seat, an illegal action).
- ``SettlementMismatchError``: the verifier found the ledger's settlement
  inconsistent with the observed round outcome.
"""

from typing import Any, Dict, Optional


class TablewatchError(Exception):
    """Base class for all tablewatch errors."""


class LedgerQueryError(TablewatchError):
    """A query against the ledger failed."""

    def __init__(self, query: str, message: str):
        super().__init__(f"{query}: {message}")
        self.query = query


class MalformedSnapshotError(LedgerQueryError):
    """A ledger response could not be decoded into a valid value."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__("decode", message if field is None else f"{field}: {message}")
        self.field = field


class PreconditionError(TablewatchError):
    """An operation was invoked on inputs it cannot handle."""


class MissingScoreError(PreconditionError):
    """The score report has no entry for a seat that was settled."""

    def __init__(self, seat: int):
        super().__init__(f"Player has no score (seat {seat})")
        self.seat = seat


class IllegalActionError(PreconditionError):
    """An action was requested that the current table view does not allow."""

    def __init__(self, action: str, seat: Optional[int], reason: str):
        super().__init__(f"Cannot {action} at seat {seat}: {reason}")
        self.action = action
        self.seat = seat
        self.reason = reason


class SettlementMismatchError(TablewatchError):
    """The ledger's settlement does not match the expected arithmetic."""

    def __init__(self, message: str, operands: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.operands = operands or {}


class LedgerActionError(TablewatchError):
    """The ledger rejected or failed to execute a state-mutating call."""

    def __init__(self, action: str, message: str):
        super().__init__(f"{action}: {message}")
        self.action = action
