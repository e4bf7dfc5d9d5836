"""
Adapter from plain callables to the ledger interfaces.

The transport layer (wallet, signing, network) lives outside this package and
hands over a resolved identity plus one callable per query and action. The
callables may be synchronous or coroutine functions and may return raw
responses in any shape the codec understands.
"""

import inspect
import logging
from typing import Any, Callable, Optional

from tablewatch.errors import LedgerActionError, LedgerQueryError
from tablewatch.ledger.base import LedgerClient
from tablewatch.state.codec import decode_balance, decode_score_report, decode_table
from tablewatch.state.models import ScoreReport, Table

logger = logging.getLogger(__name__)


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


def _missing(name: str) -> Callable[..., Any]:
    def call(*args, **kwargs):
        raise NotImplementedError(f"no {name} callable was provided")

    return call


class CallableLedger(LedgerClient):
    """
    Ledger client built from transport-provided callables.

    Example:
        ```python
        ledger = CallableLedger(
            identity=wallet.address,
            get_table=lambda: contract.query({"get_table": {}}),
            get_user_balance=lambda a: contract.query({"get_user_balance": {"address": a}}),
            ...
        )
        ```
    """

    def __init__(
        self,
        identity: str,
        get_table: Optional[Callable[[], Any]] = None,
        get_score_report: Optional[Callable[[], Any]] = None,
        get_user_balance: Optional[Callable[[str], Any]] = None,
        get_bank_balance: Optional[Callable[[], Any]] = None,
        get_wallet_balance: Optional[Callable[[str], Any]] = None,
        sit: Optional[Callable[[int], Any]] = None,
        bid: Optional[Callable[[int, int], Any]] = None,
        hit: Optional[Callable[[int], Any]] = None,
        hold: Optional[Callable[[int], Any]] = None,
        stand: Optional[Callable[[int], Any]] = None,
        kick: Optional[Callable[[int, str], Any]] = None,
    ):
        self._identity = identity or ""
        self._queries = {
            "get_table": get_table or _missing("get_table"),
            "get_score_report": get_score_report or _missing("get_score_report"),
            "get_user_balance": get_user_balance or _missing("get_user_balance"),
            "get_bank_balance": get_bank_balance or _missing("get_bank_balance"),
            "get_wallet_balance": get_wallet_balance or _missing("get_wallet_balance"),
        }
        self._actions = {
            "sit": sit or _missing("sit"),
            "bid": bid or _missing("bid"),
            "hit": hit or _missing("hit"),
            "hold": hold or _missing("hold"),
            "stand": stand or _missing("stand"),
            "kick": kick or _missing("kick"),
        }

    @property
    def identity(self) -> str:
        return self._identity

    def bind(self, identity: str) -> None:
        """Record the identity once the wallet handshake has completed."""
        self._identity = identity or ""

    async def _query(self, name: str, *args) -> Any:
        try:
            return await _resolve(self._queries[name](*args))
        except LedgerQueryError:
            raise
        except Exception as e:
            logger.debug("Query %s failed: %s", name, e)
            raise LedgerQueryError(name, str(e) or type(e).__name__) from e

    async def _act(self, name: str, *args) -> None:
        try:
            await _resolve(self._actions[name](*args))
        except LedgerActionError:
            raise
        except Exception as e:
            raise LedgerActionError(name, str(e) or type(e).__name__) from e

    async def get_table(self) -> Table:
        return decode_table(await self._query("get_table"))

    async def get_score_report(self) -> ScoreReport:
        return decode_score_report(await self._query("get_score_report"))

    async def get_user_balance(self, address: str) -> int:
        return decode_balance(await self._query("get_user_balance", address))

    async def get_bank_balance(self) -> int:
        return decode_balance(await self._query("get_bank_balance"))

    async def get_wallet_balance(self, address: str) -> int:
        return decode_balance(await self._query("get_wallet_balance", address))

    async def sit(self, seat: int) -> None:
        await self._act("sit", seat)

    async def bid(self, seat: int, amount: int) -> None:
        await self._act("bid", seat, amount)

    async def hit(self, seat: int) -> None:
        await self._act("hit", seat)

    async def hold(self, seat: int) -> None:
        await self._act("hold", seat)

    async def stand(self, seat: int) -> None:
        await self._act("stand", seat)

    async def kick(self, seat: int, target: str) -> None:
        await self._act("kick", seat, target)
