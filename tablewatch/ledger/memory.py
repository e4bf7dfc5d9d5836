"""
In-memory ledger, used for testing and simulation.

`InMemoryLedger` does not execute any table rules. It serves whatever table,
score report and balances it was given, records the actions sent to it, and
can be told to fail the next query. Tests script the ledger's behaviour by
replacing the table between polls, or by installing an `on_action` hook.
"""

from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from tablewatch.blackjack.action import Action
from tablewatch.blackjack.rules import SEAT_COUNT
from tablewatch.errors import LedgerActionError, LedgerQueryError
from tablewatch.ledger.base import LedgerClient
from tablewatch.state.models import PlayerScoreReport, ScoreReport, Table


def empty_score_report() -> ScoreReport:
    return ScoreReport(
        players=(None,) * SEAT_COUNT,
        dealer=PlayerScoreReport(address="", won=False, score=0, reward=0),
    )


class InMemoryLedger(LedgerClient):
    """
    Scripted ledger for tests and simulations.

    Attributes:
        table: Table returned by `get_table`
        score_report: Report returned by `get_score_report`
        user_balances: Betting balances held by the ledger, by address
        wallet_balances: Wallet balances, by address
        bank_balance: House balance
        actions: Every action received, as (Action, seat, extra) tuples
        query_counts: Number of calls per query name
    """

    def __init__(
        self,
        identity: str = "",
        table: Optional[Table] = None,
        bank_balance: int = 0,
        on_action: Optional[Callable[["InMemoryLedger", Action, int, Dict[str, Any]], None]] = None,
    ):
        self._identity = identity
        self.table = table or Table()
        self.score_report = empty_score_report()
        self.user_balances: Dict[str, int] = {}
        self.wallet_balances: Dict[str, int] = {}
        self.bank_balance = bank_balance
        self.on_action = on_action

        self.actions: List[Tuple[Action, int, Dict[str, Any]]] = []
        self.query_counts: Dict[str, int] = defaultdict(int)
        self._failures: Dict[str, Exception] = {}
        self._action_failures: Dict[Action, Exception] = {}

    @property
    def identity(self) -> str:
        return self._identity

    def bind(self, identity: str) -> None:
        self._identity = identity

    def fail_next(self, query: str, error: Optional[Exception] = None) -> None:
        """Make the next call to `query` raise."""
        self._failures[query] = error or LedgerQueryError(query, "ledger unreachable")

    def reject_next(self, action: Action, message: str = "rejected") -> None:
        """Make the next `action` call raise a LedgerActionError."""
        self._action_failures[action] = LedgerActionError(action.value, message)

    def _count(self, query: str) -> None:
        self.query_counts[query] += 1
        error = self._failures.pop(query, None)
        if error is not None:
            raise error

    async def get_table(self) -> Table:
        self._count("get_table")
        return self.table

    async def get_score_report(self) -> ScoreReport:
        self._count("get_score_report")
        return self.score_report

    async def get_user_balance(self, address: str) -> int:
        self._count("get_user_balance")
        return self.user_balances.get(address, 0)

    async def get_bank_balance(self) -> int:
        self._count("get_bank_balance")
        return self.bank_balance

    async def get_wallet_balance(self, address: str) -> int:
        self._count("get_wallet_balance")
        return self.wallet_balances.get(address, 0)

    def _record(self, action: Action, seat: int, **extra) -> None:
        error = self._action_failures.pop(action, None)
        if error is not None:
            raise error
        self.actions.append((action, seat, extra))
        if self.on_action is not None:
            self.on_action(self, action, seat, extra)

    async def sit(self, seat: int) -> None:
        self._record(Action.SIT, seat)

    async def bid(self, seat: int, amount: int) -> None:
        self._record(Action.BID, seat, amount=amount)

    async def hit(self, seat: int) -> None:
        self._record(Action.HIT, seat)

    async def hold(self, seat: int) -> None:
        self._record(Action.HOLD, seat)

    async def stand(self, seat: int) -> None:
        self._record(Action.STAND, seat)

    async def kick(self, seat: int, target: str) -> None:
        self._record(Action.KICK, seat, target=target)

    def actions_of(self, action: Action) -> List[Tuple[Action, int, Dict[str, Any]]]:
        return [entry for entry in self.actions if entry[0] is action]
