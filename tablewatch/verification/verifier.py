"""
Settlement verification.

This module checks, after a round has resolved, that the ledger's settlement is
arithmetically consistent with the outcome it reported for each seat. A
failed check is a failed verification: callers treat it as an assertion
failure, never as a warning.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, auto
from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging

from tablewatch.blackjack.rules import SEAT_COUNT, TableRules
from tablewatch.errors import MissingScoreError, PreconditionError, SettlementMismatchError
from tablewatch.events import EventBus, EventEmitter, WatchEventType
from tablewatch.state.models import DealerTurn, PlayerScoreReport, ScoreReport, Table


class VerificationType(Enum):
    """Types of verification checks."""

    USER_BALANCE_CLEARED = auto()
    WINNER_PAID = auto()
    BANK_BALANCE = auto()


class VerificationResult:
    """
    Result of a verification check.

    Attributes:
        verification_type: The type of verification check
        passed: Whether the check passed
        error_detail: Details about the error if the check failed
        seat: Seat the check applies to, None for table-wide checks
        operands: Expected and observed values the check compared
    """

    def __init__(
        self,
        verification_type: VerificationType,
        passed: bool,
        error_detail: Optional[str] = None,
        seat: Optional[int] = None,
        operands: Optional[Dict[str, Any]] = None,
    ):
        self.verification_type = verification_type
        self.passed = passed
        self.error_detail = error_detail
        self.seat = seat
        self.operands = operands or {}

    def __str__(self) -> str:
        status = "PASSED" if self.passed else "FAILED"
        where = "" if self.seat is None else f" (seat {self.seat})"
        result = f"{self.verification_type.name}{where}: {status}"
        if not self.passed and self.error_detail:
            result += f" - {self.error_detail}"
        return result

    def __repr__(self) -> str:
        return f"VerificationResult({self})"


@dataclass(frozen=True)
class PlayerBaseline:
    """
    A settled player's state captured before the round.

    Attributes:
        seat: Seat the player held during the round
        pre_wallet_balance: Wallet balance before the round
        address: Player identity; taken from the score report when empty
    """

    seat: int
    pre_wallet_balance: int
    address: str = ""


@dataclass(frozen=True)
class SettlementObservation:
    """Ledger balances observed after the round, keyed by address."""

    bank_balance: int
    user_balances: Mapping[str, int] = field(default_factory=dict)
    wallet_balances: Mapping[str, int] = field(default_factory=dict)


@dataclass
class SettlementReport:
    """
    Outcome of verifying one round's settlement.

    Attributes:
        pre_bank_balance: Bank balance before the round
        expected_awards: Expected signed award per seat
        expected_bank_delta: Expected change of the bank balance
        observed_bank_balance: Bank balance after the round
        observed_user_balances: Ledger betting balance per seat after the round
        results: One result per check performed
        dealer_won: Whether the dealer won against each seat
    """

    pre_bank_balance: int
    expected_awards: Dict[int, Decimal]
    expected_bank_delta: Decimal
    observed_bank_balance: int
    observed_user_balances: Dict[int, Optional[int]]
    results: List[VerificationResult]
    dealer_won: Dict[int, bool] = field(default_factory=dict)

    @property
    def expected_bank_balance(self) -> Decimal:
        return Decimal(self.pre_bank_balance) + self.expected_bank_delta

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def failures(self) -> List[VerificationResult]:
        return [result for result in self.results if not result.passed]

    @property
    def diagnostics(self) -> List[str]:
        return [str(result) for result in self.failures]

    def operands(self) -> Dict[str, Any]:
        """Every value the verification was computed from, for diagnostics."""
        return {
            "pre_bank_balance": self.pre_bank_balance,
            "expected_awards": {seat: str(a) for seat, a in self.expected_awards.items()},
            "expected_bank_delta": str(self.expected_bank_delta),
            "expected_bank_balance": str(self.expected_bank_balance),
            "observed_bank_balance": self.observed_bank_balance,
            "observed_user_balances": dict(self.observed_user_balances),
            "failures": [
                {"check": r.verification_type.name, "seat": r.seat, **r.operands}
                for r in self.failures
            ],
        }

    def raise_for_failure(self) -> None:
        """Raise SettlementMismatchError when any check failed."""
        if not self.passed:
            raise SettlementMismatchError(
                "Settlement mismatch: " + "; ".join(self.diagnostics),
                self.operands(),
            )

    def __str__(self) -> str:
        lines = [
            f"Settlement {'PASSED' if self.passed else 'FAILED'}: "
            f"bank {self.pre_bank_balance} -> {self.observed_bank_balance} "
            f"(expected {self.expected_bank_balance})"
        ]
        lines.extend(f"  {result}" for result in self.results)
        return "\n".join(lines)


class SettlementVerifier:
    """
    Verifies a round's settlement against the ledger's own score report.

    For every settled seat the expected award is ``-bet`` when the dealer
    won and ``bet`` otherwise, multiplied by the blackjack bonus when the
    seat scored 21. The bank keeps ``rake`` of every swing, so its balance
    must move by ``-sum(award * rake)``. All arithmetic is exact.
    """

    def __init__(self, rules: Optional[TableRules] = None, emitter: Optional[EventEmitter] = None):
        self.rules = rules or TableRules()
        self.event_bus = emitter or EventBus.get_instance()
        self.logger = logging.getLogger(__name__)

    def dealer_won(self, entry: PlayerScoreReport) -> bool:
        """
        Read the stored ``won`` flag in the configured perspective.

        The default reads ``won == True`` as a dealer win. The on-chain
        contract itself writes ``won: true`` when the player wins, so a
        ledger running that contract unchanged needs
        ``won_flag_is_dealer_perspective=False`` (CLI ``--player-perspective``).
        """
        if self.rules.won_flag_is_dealer_perspective:
            return entry.won
        return not entry.won

    def expected_award(self, entry: PlayerScoreReport) -> Decimal:
        """Signed amount the player should receive (negative when they lost)."""
        bet = Decimal(self.rules.bet_amount)
        if self.dealer_won(entry):
            return -bet
        if entry.score == self.rules.blackjack_score:
            return bet * self.rules.blackjack_bonus
        return bet

    def verify(
        self,
        pre_bank_balance: int,
        players: Iterable[PlayerBaseline],
        report: ScoreReport,
        post_table: Table,
        observed: SettlementObservation,
    ) -> SettlementReport:
        """
        Verify the settlement of one resolved round.

        Args:
            pre_bank_balance: Bank balance captured before the round
            players: Baselines of the players that were settled
            report: The ledger's score report for the round
            post_table: Table observed after the round
            observed: Balances observed after the round

        Returns:
            A SettlementReport; check `passed` or call `raise_for_failure`

        Raises:
            MissingScoreError: A settled seat has no entry in the report
            PreconditionError: The round is still being resolved, or a seat
                is listed twice or does not exist
        """
        if isinstance(post_table.state, DealerTurn):
            raise PreconditionError("Round still in progress (dealer turn); verify after it resolves")

        awards: Dict[int, Decimal] = {}
        dealer_won: Dict[int, bool] = {}
        user_balances: Dict[int, Optional[int]] = {}
        results: List[VerificationResult] = []
        bank_delta = Decimal(0)

        for baseline in players:
            if not 0 <= baseline.seat < SEAT_COUNT:
                raise PreconditionError(f"seat {baseline.seat} does not exist")
            if baseline.seat in awards:
                raise PreconditionError(f"seat {baseline.seat} listed twice")
            entry = report.for_seat(baseline.seat)
            if entry is None:
                raise MissingScoreError(baseline.seat)
            address = baseline.address or entry.address

            award = self.expected_award(entry)
            awards[baseline.seat] = award
            dealer_won[baseline.seat] = self.dealer_won(entry)
            bank_delta -= award * self.rules.rake

            balance = observed.user_balances.get(address)
            user_balances[baseline.seat] = balance
            results.append(self._check_user_balance(baseline.seat, address, balance))

            if award > 0:
                results.append(
                    self._check_winner_paid(
                        baseline, address, observed.wallet_balances.get(address)
                    )
                )

        expected_bank = Decimal(pre_bank_balance) + bank_delta
        results.append(
            VerificationResult(
                VerificationType.BANK_BALANCE,
                Decimal(observed.bank_balance) == expected_bank,
                f"expected {expected_bank} (pre {pre_bank_balance} + delta {bank_delta}), "
                f"observed {observed.bank_balance}",
                operands={
                    "pre_bank_balance": pre_bank_balance,
                    "expected_bank_delta": str(bank_delta),
                    "expected": str(expected_bank),
                    "observed": observed.bank_balance,
                },
            )
        )

        settlement = SettlementReport(
            pre_bank_balance=pre_bank_balance,
            expected_awards=awards,
            expected_bank_delta=bank_delta,
            observed_bank_balance=observed.bank_balance,
            observed_user_balances=user_balances,
            results=results,
            dealer_won=dealer_won,
        )
        self._publish(settlement)
        return settlement

    def _check_user_balance(
        self, seat: int, address: str, balance: Optional[int]
    ) -> VerificationResult:
        if balance is None:
            detail = f"no ledger balance observed for {address or '<unknown>'}"
        else:
            detail = f"ledger still holds {balance} for {address}"
        return VerificationResult(
            VerificationType.USER_BALANCE_CLEARED,
            balance == 0,
            detail,
            seat=seat,
            operands={"address": address, "expected": 0, "observed": balance},
        )

    def _check_winner_paid(
        self, baseline: PlayerBaseline, address: str, wallet: Optional[int]
    ) -> VerificationResult:
        passed = wallet is not None and wallet > baseline.pre_wallet_balance
        return VerificationResult(
            VerificationType.WINNER_PAID,
            passed,
            f"wallet of {address} went from {baseline.pre_wallet_balance} to {wallet}",
            seat=baseline.seat,
            operands={
                "address": address,
                "pre_wallet_balance": baseline.pre_wallet_balance,
                "observed": wallet,
            },
        )

    def _publish(self, settlement: SettlementReport) -> None:
        if settlement.passed:
            self.logger.info(
                "Settlement verified: %d seats, bank delta %s",
                len(settlement.expected_awards),
                settlement.expected_bank_delta,
            )
            self.event_bus.emit(
                WatchEventType.SETTLEMENT_VERIFIED,
                {"report": settlement, "bank_delta": str(settlement.expected_bank_delta)},
            )
        else:
            for line in settlement.diagnostics:
                self.logger.error("Settlement check failed: %s", line)
            self.event_bus.emit(
                WatchEventType.SETTLEMENT_FAILED,
                {"report": settlement, "diagnostics": settlement.diagnostics},
            )
