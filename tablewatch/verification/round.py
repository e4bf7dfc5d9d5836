"""
Round capture for settlement verification.

A round is verified in two halves: a baseline captured before the players
bid, and an observation taken once the round has resolved. Both halves can be
written to and read back from JSON so that a round recorded against a live
ledger can be verified again offline.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from tablewatch.blackjack.rules import TableRules
from tablewatch.errors import MalformedSnapshotError, PreconditionError
from tablewatch.ledger.base import LedgerQueries
from tablewatch.state.codec import (
    decode_score_report,
    decode_table,
    encode_score_report,
    encode_table,
)
from tablewatch.state.models import ScoreReport, Table
from tablewatch.verification.verifier import (
    PlayerBaseline,
    SettlementObservation,
    SettlementReport,
    SettlementVerifier,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundBaseline:
    """Bank and wallet balances captured before a round."""

    bank_balance: int
    players: Tuple[PlayerBaseline, ...]
    captured_at: float = 0.0


@dataclass(frozen=True)
class RoundObservation:
    """What the ledger shows once a round has resolved."""

    report: ScoreReport
    table: Table
    balances: SettlementObservation
    observed_at: float = 0.0


@dataclass(frozen=True)
class RoundRecord:
    """A complete round: baseline, observation and the rules it was played under."""

    baseline: RoundBaseline
    observation: RoundObservation
    rules: TableRules

    def to_dict(self) -> Dict[str, Any]:
        """Convert the record to a JSON-serializable dictionary."""
        balances = self.observation.balances
        return {
            "rules": self.rules.to_dict(),
            "pre_bank_balance": self.baseline.bank_balance,
            "players": [
                {
                    "seat": p.seat,
                    "address": p.address,
                    "pre_wallet_balance": p.pre_wallet_balance,
                }
                for p in self.baseline.players
            ],
            "score_report": encode_score_report(self.observation.report),
            "post_table": encode_table(self.observation.table),
            "post": {
                "bank_balance": balances.bank_balance,
                "user_balances": dict(balances.user_balances),
                "wallet_balances": dict(balances.wallet_balances),
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], rules: Optional[TableRules] = None) -> "RoundRecord":
        """
        Build a record from its dictionary form.

        Args:
            data: Dictionary as produced by `to_dict`
            rules: Rules overriding the ones stored in the record
        """
        try:
            players = tuple(
                PlayerBaseline(
                    seat=int(p["seat"]),
                    pre_wallet_balance=int(p["pre_wallet_balance"]),
                    address=str(p.get("address", "")),
                )
                for p in data["players"]
            )
            post = data["post"]
            balances = SettlementObservation(
                bank_balance=int(post["bank_balance"]),
                user_balances={k: int(v) for k, v in post.get("user_balances", {}).items()},
                wallet_balances={k: int(v) for k, v in post.get("wallet_balances", {}).items()},
            )
            baseline = RoundBaseline(bank_balance=int(data["pre_bank_balance"]), players=players)
            observation = RoundObservation(
                report=decode_score_report(data["score_report"]),
                table=decode_table(data["post_table"]),
                balances=balances,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedSnapshotError(f"invalid round record: {e}", field="round") from e

        return cls(
            baseline=baseline,
            observation=observation,
            rules=rules or TableRules.from_dict(data.get("rules")),
        )


class RoundRecorder:
    """
    Captures rounds from a ledger and verifies their settlement.

    Example:
        ```python
        recorder = RoundRecorder(rules)
        baseline = await recorder.capture_baseline(ledger)
        ...  # players bid, play and the dealer resolves
        report = await recorder.verify_round(ledger, baseline)
        report.raise_for_failure()
        ```
    """

    def __init__(
        self,
        rules: Optional[TableRules] = None,
        verifier: Optional[SettlementVerifier] = None,
        clock=time.time,
    ):
        self.rules = rules or (verifier.rules if verifier else TableRules())
        self.verifier = verifier or SettlementVerifier(self.rules)
        self._clock = clock

    async def capture_baseline(
        self, ledger: LedgerQueries, seats: Optional[Iterable[int]] = None
    ) -> RoundBaseline:
        """
        Capture the bank balance and the wallet balance of each player.

        Args:
            ledger: Ledger to query
            seats: Seats that will be settled; defaults to every occupied seat

        Raises:
            PreconditionError: A requested seat is empty
        """
        table = await ledger.get_table()
        if seats is None:
            seats = [player.seat for player in table.players if player.is_seated]

        players = []
        for seat in seats:
            player = table.player(seat)
            if not player.is_seated:
                raise PreconditionError(f"Seat {seat} is empty; nothing to settle")
            players.append(
                PlayerBaseline(
                    seat=seat,
                    pre_wallet_balance=await ledger.get_wallet_balance(player.address),
                    address=player.address,
                )
            )

        baseline = RoundBaseline(
            bank_balance=await ledger.get_bank_balance(),
            players=tuple(players),
            captured_at=self._clock(),
        )
        logger.debug("Captured baseline for seats %s", [p.seat for p in baseline.players])
        return baseline

    async def observe(self, ledger: LedgerQueries, baseline: RoundBaseline) -> RoundObservation:
        """Fetch the score report, the table and the post-round balances."""
        report = await ledger.get_score_report()
        table = await ledger.get_table()

        user_balances: Dict[str, int] = {}
        wallet_balances: Dict[str, int] = {}
        for player in baseline.players:
            address = player.address
            if not address:
                entry = report.for_seat(player.seat)
                address = entry.address if entry is not None else ""
            if not address:
                continue
            user_balances[address] = await ledger.get_user_balance(address)
            wallet_balances[address] = await ledger.get_wallet_balance(address)

        return RoundObservation(
            report=report,
            table=table,
            balances=SettlementObservation(
                bank_balance=await ledger.get_bank_balance(),
                user_balances=user_balances,
                wallet_balances=wallet_balances,
            ),
            observed_at=self._clock(),
        )

    def verify(self, record: RoundRecord) -> SettlementReport:
        """Verify an already captured round."""
        return self.verifier.verify(
            record.baseline.bank_balance,
            record.baseline.players,
            record.observation.report,
            record.observation.table,
            record.observation.balances,
        )

    async def record_round(self, ledger: LedgerQueries, baseline: RoundBaseline) -> RoundRecord:
        return RoundRecord(
            baseline=baseline,
            observation=await self.observe(ledger, baseline),
            rules=self.rules,
        )

    async def verify_round(self, ledger: LedgerQueries, baseline: RoundBaseline) -> SettlementReport:
        """
        Observe the resolved round and verify its settlement.

        Raises:
            PreconditionError: The dealer is still resolving the round
        """
        return self.verify(await self.record_round(ledger, baseline))
