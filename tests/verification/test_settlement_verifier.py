"""
Tests for settlement verification.
"""

from decimal import Decimal

import pytest

from tablewatch.blackjack.rules import TableRules
from tablewatch.errors import MissingScoreError, PreconditionError, SettlementMismatchError
from tablewatch.events import EventBus, WatchEventType
from tablewatch.state.models import DealerTurn, NoPlayers, PlayerScoreReport, ScoreReport, Table
from tablewatch.verification.verifier import (
    PlayerBaseline,
    SettlementObservation,
    SettlementVerifier,
    VerificationType,
)

ALICE = "wasm1alice"
BOB = "wasm1bob"
PRE_BANK = 225_000_000


def report(**entries):
    players = [None] * 6
    for key, (address, won, score) in entries.items():
        players[int(key[1:])] = PlayerScoreReport(address=address, won=won, score=score, reward=0)
    return ScoreReport(
        players=tuple(players),
        dealer=PlayerScoreReport(address="", won=False, score=0, reward=0),
    )


@pytest.fixture
def verifier():
    return SettlementVerifier(TableRules(bet_amount=10_000_000))


def test_player_blackjack_scenario(verifier):
    result = verifier.verify(
        PRE_BANK,
        [PlayerBaseline(seat=3, pre_wallet_balance=1_000)],
        report(s3=(ALICE, False, 21)),
        Table(),
        SettlementObservation(
            bank_balance=213_750_000,
            user_balances={ALICE: 0},
            wallet_balances={ALICE: 12_501_000},
        ),
    )

    assert result.expected_awards == {3: Decimal("12500000")}
    assert result.expected_bank_delta == Decimal("-11250000")
    assert result.expected_bank_balance == Decimal("213750000")
    assert result.observed_user_balances == {3: 0}
    assert result.dealer_won == {3: False}
    assert result.passed, result.diagnostics
    result.raise_for_failure()


def test_dealer_wins_scenario(verifier):
    result = verifier.verify(
        PRE_BANK,
        [PlayerBaseline(seat=3, pre_wallet_balance=1_000)],
        report(s3=(ALICE, True, 18)),
        Table(),
        SettlementObservation(
            bank_balance=234_000_000,
            user_balances={ALICE: 0},
            wallet_balances={ALICE: 1_000},
        ),
    )

    assert result.expected_awards == {3: Decimal("-10000000")}
    assert result.expected_bank_delta == Decimal("9000000")
    assert result.passed
    assert VerificationType.WINNER_PAID not in {r.verification_type for r in result.results}


def test_plain_win_pays_the_bet(verifier):
    result = verifier.verify(
        PRE_BANK,
        [PlayerBaseline(seat=0, pre_wallet_balance=0, address=BOB)],
        report(s0=(BOB, False, 19)),
        Table(),
        SettlementObservation(bank_balance=216_000_000, user_balances={BOB: 0}, wallet_balances={BOB: 10}),
    )
    assert result.expected_awards == {0: Decimal("10000000")}
    assert result.passed


def test_two_players_accumulate(verifier):
    result = verifier.verify(
        PRE_BANK,
        [PlayerBaseline(seat=3, pre_wallet_balance=0), PlayerBaseline(seat=5, pre_wallet_balance=0)],
        report(s3=(ALICE, False, 21), s5=(BOB, True, 17)),
        Table(),
        SettlementObservation(
            bank_balance=PRE_BANK - 11_250_000 + 9_000_000,
            user_balances={ALICE: 0, BOB: 0},
            wallet_balances={ALICE: 1, BOB: 0},
        ),
    )
    assert result.expected_bank_delta == Decimal("-2250000")
    assert result.passed


def test_bank_mismatch_fails_with_operands(verifier):
    failed = []
    EventBus.get_instance().on(WatchEventType.SETTLEMENT_FAILED, failed.append)

    result = verifier.verify(
        PRE_BANK,
        [PlayerBaseline(seat=3, pre_wallet_balance=0)],
        report(s3=(ALICE, False, 21)),
        Table(),
        SettlementObservation(bank_balance=213_750_001, user_balances={ALICE: 0}, wallet_balances={ALICE: 1}),
    )

    assert not result.passed
    assert [r.verification_type for r in result.failures] == [VerificationType.BANK_BALANCE]
    assert "213750001" in result.diagnostics[0]
    assert len(failed) == 1

    with pytest.raises(SettlementMismatchError) as excinfo:
        result.raise_for_failure()
    operands = excinfo.value.operands
    assert operands["observed_bank_balance"] == 213_750_001
    assert operands["expected_bank_balance"] == "213750000.000"


def test_uncleared_user_balance_fails(verifier):
    result = verifier.verify(
        PRE_BANK,
        [PlayerBaseline(seat=3, pre_wallet_balance=0)],
        report(s3=(ALICE, True, 18)),
        Table(),
        SettlementObservation(bank_balance=234_000_000, user_balances={ALICE: 10_000_000}),
    )
    assert not result.passed
    failure = result.failures[0]
    assert failure.verification_type is VerificationType.USER_BALANCE_CLEARED
    assert failure.seat == 3
    assert failure.operands["observed"] == 10_000_000


def test_unpaid_winner_fails(verifier):
    result = verifier.verify(
        PRE_BANK,
        [PlayerBaseline(seat=3, pre_wallet_balance=500)],
        report(s3=(ALICE, False, 21)),
        Table(),
        SettlementObservation(bank_balance=213_750_000, user_balances={ALICE: 0}, wallet_balances={ALICE: 500}),
    )
    assert [r.verification_type for r in result.failures] == [VerificationType.WINNER_PAID]


def test_missing_score_is_a_precondition_error(verifier):
    with pytest.raises(MissingScoreError, match="seat 4"):
        verifier.verify(
            PRE_BANK,
            [PlayerBaseline(seat=4, pre_wallet_balance=0)],
            report(s3=(ALICE, False, 21)),
            Table(),
            SettlementObservation(bank_balance=PRE_BANK),
        )


def test_refuses_in_flight_round(verifier):
    from tablewatch.state.models import Player

    players = [Player(seat=i) for i in range(6)]
    players[3] = Player(seat=3, address=ALICE)
    with pytest.raises(PreconditionError):
        verifier.verify(
            PRE_BANK,
            [PlayerBaseline(seat=3, pre_wallet_balance=0)],
            report(s3=(ALICE, False, 21)),
            Table(players=tuple(players), state=DealerTurn()),
            SettlementObservation(bank_balance=PRE_BANK),
        )


def test_seat_listed_twice_is_rejected(verifier):
    settled = []
    EventBus.get_instance().on(WatchEventType.SETTLEMENT_VERIFIED, settled.append)
    EventBus.get_instance().on(WatchEventType.SETTLEMENT_FAILED, settled.append)

    with pytest.raises(PreconditionError, match="seat 1 listed twice"):
        verifier.verify(
            PRE_BANK,
            [
                PlayerBaseline(seat=1, pre_wallet_balance=0),
                PlayerBaseline(seat=1, pre_wallet_balance=0),
            ],
            report(s1=(ALICE, True, 18)),
            Table(),
            SettlementObservation(bank_balance=PRE_BANK + 9_000_000, user_balances={ALICE: 0}),
        )
    assert settled == []


@pytest.mark.parametrize("seat", [-1, 6])
def test_seat_outside_the_table_is_rejected(verifier, seat):
    with pytest.raises(PreconditionError, match=f"seat {seat} does not exist"):
        verifier.verify(
            PRE_BANK,
            [PlayerBaseline(seat=seat, pre_wallet_balance=0)],
            report(s1=(ALICE, True, 18)),
            Table(),
            SettlementObservation(bank_balance=PRE_BANK),
        )


def test_player_perspective_flag():
    verifier = SettlementVerifier(TableRules(won_flag_is_dealer_perspective=False))
    entry = PlayerScoreReport(address=ALICE, won=True, score=21, reward=0)
    assert verifier.expected_award(entry) == Decimal("12500000")


def test_configurable_bet_and_rake():
    verifier = SettlementVerifier(TableRules(bet_amount=4_000, rake="0.5", blackjack_bonus="1.5"))
    result = verifier.verify(
        1_000_000,
        [PlayerBaseline(seat=1, pre_wallet_balance=0)],
        report(s1=(ALICE, False, 21)),
        Table(state=NoPlayers()),
        SettlementObservation(bank_balance=997_000, user_balances={ALICE: 0}, wallet_balances={ALICE: 6_000}),
    )
    assert result.expected_awards[1] == Decimal("6000")
    assert result.expected_bank_delta == Decimal("-3000")
    assert result.passed


def test_verified_event(verifier):
    verified = []
    EventBus.get_instance().on(WatchEventType.SETTLEMENT_VERIFIED, verified.append)
    verifier.verify(
        PRE_BANK,
        [],
        report(),
        Table(),
        SettlementObservation(bank_balance=PRE_BANK),
    )
    assert len(verified) == 1
    assert verified[0]["report"].passed
