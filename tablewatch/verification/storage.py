"""
SQLite storage for settlement verification outcomes.
"""

import json
from typing import Any, Dict, List, Optional

from tablewatch.blackjack.rules import TableRules
from tablewatch.state.models import ScoreReport
from tablewatch.verification.schema import initialize_database
from tablewatch.verification.verifier import SettlementReport


class SQLiteSettlementStore:
    """
    Store and retrieve verified rounds from SQLite.

    Attributes:
        db_path: Path of the database file
        conn: Open connection
    """

    def __init__(self, db_path: Optional[str] = ":memory:"):
        """
        Open (and if needed create) the store.

        Args:
            db_path: Database file, ":memory:" by default. None selects
                the default location under the home directory.
        """
        self.db_path = db_path
        self.conn = initialize_database(db_path)

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "SQLiteSettlementStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def record_report(
        self,
        report: SettlementReport,
        rules: TableRules,
        score_report: Optional[ScoreReport] = None,
        table_label: str = "",
    ) -> int:
        """
        Store a verified round together with every check.

        Args:
            report: The settlement report to store
            rules: Rules the round was verified under
            score_report: Ledger score report, used to store addresses and scores
            table_label: Free-form label of the table the round was played at

        Returns:
            The round_id of the stored round
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO rounds
            (table_label, rules_config, pre_bank_balance, expected_bank_delta,
             expected_bank_balance, observed_bank_balance, passed)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                table_label,
                json.dumps(rules.to_dict()),
                str(report.pre_bank_balance),
                str(report.expected_bank_delta),
                str(report.expected_bank_balance),
                str(report.observed_bank_balance),
                report.passed,
            ),
        )
        round_id = cursor.lastrowid

        for seat, award in report.expected_awards.items():
            entry = score_report.for_seat(seat) if score_report else None
            observed = report.observed_user_balances.get(seat)
            cursor.execute(
                """
                INSERT INTO settlements
                (round_id, seat, address, dealer_won, score, expected_award, observed_user_balance)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    round_id,
                    seat,
                    entry.address if entry else None,
                    report.dealer_won.get(seat),
                    entry.score if entry else None,
                    str(award),
                    None if observed is None else str(observed),
                ),
            )

        for result in report.results:
            cursor.execute(
                """
                INSERT INTO verification_results
                (round_id, seat, verification_type, passed, error_detail, operands)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    round_id,
                    result.seat,
                    result.verification_type.name,
                    result.passed,
                    None if result.passed else result.error_detail,
                    json.dumps(result.operands, default=str),
                ),
            )

        self.conn.commit()
        return round_id

    def get_rounds(self, table_label: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Get stored rounds in insertion order.

        Args:
            table_label: Only return rounds with this label

        Returns:
            A list of dictionaries containing round data
        """
        cursor = self.conn.cursor()
        if table_label is None:
            cursor.execute("SELECT * FROM rounds ORDER BY round_id")
        else:
            cursor.execute(
                "SELECT * FROM rounds WHERE table_label = ? ORDER BY round_id",
                (table_label,),
            )
        return [dict(row) for row in cursor.fetchall()]

    def get_settlements(
        self, round_id: Optional[int] = None, table_label: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Get settled seats, for one round or for all of them.

        Args:
            round_id: Only return the seats of this round
            table_label: Only return seats of rounds stored with this label
        """
        cursor = self.conn.cursor()
        if round_id is not None:
            cursor.execute(
                "SELECT * FROM settlements WHERE round_id = ? ORDER BY seat",
                (round_id,),
            )
        elif table_label is not None:
            cursor.execute(
                """
                SELECT s.* FROM settlements s
                JOIN rounds r ON r.round_id = s.round_id
                WHERE r.table_label = ?
                ORDER BY s.settlement_id
                """,
                (table_label,),
            )
        else:
            cursor.execute("SELECT * FROM settlements ORDER BY settlement_id")
        return [dict(row) for row in cursor.fetchall()]

    def get_verification_results(self, round_id: int) -> List[Dict[str, Any]]:
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM verification_results
            WHERE round_id = ?
            ORDER BY verification_id
            """,
            (round_id,),
        )
        rows = []
        for row in cursor.fetchall():
            data = dict(row)
            data["operands"] = json.loads(data["operands"]) if data["operands"] else {}
            rows.append(data)
        return rows
