"""
Ledger interfaces.

The ledger is the external, authoritative record of the table. The client
reads it through `LedgerQueries` and changes it through `LedgerActions`; the
effect of an action is only ever observed through a later query.
"""

from abc import ABC, abstractmethod

from tablewatch.state.models import ScoreReport, Table


class LedgerQueries(ABC):
    """
    Read-only view of the ledger.

    Implementations raise `LedgerQueryError` when the ledger cannot be reached
    or answers with something that cannot be decoded.
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """Address the transport is bound to, "" before the wallet handshake."""

    @abstractmethod
    async def get_table(self) -> Table:
        """Fetch the current table."""

    @abstractmethod
    async def get_score_report(self) -> ScoreReport:
        """Fetch the results of the last settled round."""

    @abstractmethod
    async def get_user_balance(self, address: str) -> int:
        """Fetch the betting balance the ledger holds for an address."""

    @abstractmethod
    async def get_bank_balance(self) -> int:
        """Fetch the house balance."""

    @abstractmethod
    async def get_wallet_balance(self, address: str) -> int:
        """Fetch the spendable wallet balance of an address."""


class LedgerActions(ABC):
    """
    State-mutating calls against the ledger.

    Implementations raise `LedgerActionError` when the call is rejected.
    """

    @abstractmethod
    async def sit(self, seat: int) -> None:
        pass

    @abstractmethod
    async def bid(self, seat: int, amount: int) -> None:
        pass

    @abstractmethod
    async def hit(self, seat: int) -> None:
        pass

    @abstractmethod
    async def hold(self, seat: int) -> None:
        pass

    @abstractmethod
    async def stand(self, seat: int) -> None:
        pass

    @abstractmethod
    async def kick(self, seat: int, target: str) -> None:
        pass


class LedgerClient(LedgerQueries, LedgerActions, ABC):
    """A ledger connection that can both read and act."""
