"""
Tests for the SQLite settlement store and the statistics built on it.
"""

import pytest

from tablewatch.blackjack.rules import TableRules
from tablewatch.state.models import PlayerScoreReport, ScoreReport, Table
from tablewatch.verification.schema import initialize_database
from tablewatch.verification.statistics import AnalysisType, ConfidenceInterval, SettlementStatistics
from tablewatch.verification.storage import SQLiteSettlementStore
from tablewatch.verification.verifier import (
    PlayerBaseline,
    SettlementObservation,
    SettlementVerifier,
)

ALICE = "wasm1alice"
PRE_BANK = 225_000_000


def score_report(won, score):
    players = [None] * 6
    players[3] = PlayerScoreReport(address=ALICE, won=won, score=score, reward=0)
    return ScoreReport(players=tuple(players), dealer=PlayerScoreReport("", False, 0, 0))


def verify(won, score, bank_balance):
    report = score_report(won, score)
    settlement = SettlementVerifier().verify(
        PRE_BANK,
        [PlayerBaseline(seat=3, pre_wallet_balance=0)],
        report,
        Table(),
        SettlementObservation(bank_balance=bank_balance, user_balances={ALICE: 0}, wallet_balances={ALICE: 1}),
    )
    return settlement, report


@pytest.fixture
def store():
    store = SQLiteSettlementStore(":memory:")
    yield store
    store.close()


def test_schema_creates_tables():
    conn = initialize_database(":memory:")
    cursor = conn.cursor()
    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row["name"] for row in cursor.fetchall()}
    conn.close()
    assert {"rounds", "settlements", "verification_results"} <= tables


def test_schema_in_file(tmp_path):
    path = tmp_path / "nested" / "verification.db"
    with SQLiteSettlementStore(str(path)) as store:
        assert store.get_rounds() == []
    assert path.exists()


def test_record_report(store):
    settlement, report = verify(False, 21, 213_750_000)
    round_id = store.record_report(settlement, TableRules(), report, table_label="table-1")

    rounds = store.get_rounds()
    assert len(rounds) == 1
    assert rounds[0]["round_id"] == round_id
    assert rounds[0]["passed"] == 1
    assert rounds[0]["expected_bank_delta"] == "-11250000.000"
    assert store.get_rounds("other") == []

    settlements = store.get_settlements(round_id)
    assert settlements[0]["address"] == ALICE
    assert settlements[0]["score"] == 21
    assert settlements[0]["dealer_won"] == 0

    results = store.get_verification_results(round_id)
    assert {r["verification_type"] for r in results} == {
        "USER_BALANCE_CLEARED",
        "WINNER_PAID",
        "BANK_BALANCE",
    }
    assert all(r["error_detail"] is None for r in results)


def test_failed_checks_keep_detail(store):
    settlement, report = verify(True, 18, PRE_BANK)
    round_id = store.record_report(settlement, TableRules(), report)

    failed = [r for r in store.get_verification_results(round_id) if not r["passed"]]
    assert [r["verification_type"] for r in failed] == ["BANK_BALANCE"]
    assert failed[0]["operands"]["observed"] == PRE_BANK


def test_statistics_on_empty_store(store):
    analyses = SettlementStatistics(store).run_all_analyses()
    assert analyses[AnalysisType.PASS_RATE.name]["sample_size"] == 0
    assert analyses[AnalysisType.BANK_DELTA.name]["mean"] == 0.0


def test_statistics(store):
    for won, score, bank in [
        (False, 21, 213_750_000),
        (True, 18, 234_000_000),
        (True, 20, 234_000_000),
        (False, 19, 0),
    ]:
        settlement, report = verify(won, score, bank)
        store.record_report(settlement, TableRules(), report)

    stats = SettlementStatistics(store)

    pass_rate = stats.calculate_pass_rate()
    assert pass_rate["rate"] == pytest.approx(0.75)
    assert pass_rate["sample_size"] == 4
    interval = pass_rate["confidence_interval"]
    assert 0.0 <= interval["lower"] <= 0.75 <= interval["upper"] <= 1.0

    win_rate = stats.calculate_player_win_rate()
    assert win_rate["rate"] == pytest.approx(0.5)

    blackjacks = stats.calculate_blackjack_frequency()
    assert blackjacks["rate"] == pytest.approx(0.5)

    delta = stats.calculate_bank_delta()
    assert delta["mean"] == pytest.approx((-11_250_000 + 9_000_000 + 9_000_000 - 9_000_000) / 4)
    assert delta["sample_size"] == 4
    ci = ConfidenceInterval(**delta["confidence_interval"])
    assert ci.contains(delta["mean"])


def test_single_round_interval_is_degenerate(store):
    settlement, report = verify(True, 18, 234_000_000)
    store.record_report(settlement, TableRules(), report)
    ci = SettlementStatistics(store).calculate_bank_delta()["confidence_interval"]
    assert ci["lower"] == ci["upper"] == 9_000_000


def test_statistics_for_one_table(store):
    for label, (won, score, bank) in [
        ("table-1", (False, 21, 213_750_000)),
        ("table-1", (True, 18, 234_000_000)),
        ("table-2", (False, 19, 216_000_000)),
        ("table-2", (False, 19, 216_000_000)),
    ]:
        settlement, report = verify(won, score, bank)
        store.record_report(settlement, TableRules(), report, table_label=label)

    assert len(store.get_settlements()) == 4
    assert [s["score"] for s in store.get_settlements(table_label="table-1")] == [21, 18]
    assert store.get_settlements(table_label="other") == []

    analyses = SettlementStatistics(store).run_all_analyses("table-1")
    assert analyses[AnalysisType.PASS_RATE.name]["sample_size"] == 2
    assert analyses[AnalysisType.PLAYER_WIN_RATE.name]["sample_size"] == 2
    assert analyses[AnalysisType.PLAYER_WIN_RATE.name]["rate"] == pytest.approx(0.5)
    assert analyses[AnalysisType.BLACKJACK_FREQUENCY.name]["sample_size"] == 1
    assert analyses[AnalysisType.BLACKJACK_FREQUENCY.name]["rate"] == pytest.approx(1.0)

    table_two = SettlementStatistics(store).calculate_blackjack_frequency(table_label="table-2")
    assert table_two["rate"] == pytest.approx(0.0)
    assert table_two["sample_size"] == 2
