"""
Database schema for recorded settlement verifications.

Each verified round is stored with the expectation computed for every seat
and the outcome of every check, so that a history of rounds can be audited
and analysed later.
"""

from typing import Optional
import sqlite3
from pathlib import Path


SCHEMA_SQL = """
-- Verified rounds
CREATE TABLE IF NOT EXISTS rounds (
    round_id INTEGER PRIMARY KEY,
    table_label TEXT,
    rules_config TEXT,  -- JSON of the rules the round was verified under
    pre_bank_balance TEXT,
    expected_bank_delta TEXT,  -- Decimal as text
    expected_bank_balance TEXT,
    observed_bank_balance TEXT,
    passed BOOLEAN,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
);

-- Settled seats within a round
CREATE TABLE IF NOT EXISTS settlements (
    settlement_id INTEGER PRIMARY KEY,
    round_id INTEGER,
    seat INTEGER,
    address TEXT,
    dealer_won BOOLEAN,
    score INTEGER,
    expected_award TEXT,
    observed_user_balance TEXT,
    FOREIGN KEY (round_id) REFERENCES rounds(round_id)
);

-- Individual check outcomes
CREATE TABLE IF NOT EXISTS verification_results (
    verification_id INTEGER PRIMARY KEY,
    round_id INTEGER,
    seat INTEGER,  -- NULL for table-wide checks
    verification_type TEXT,  -- 'USER_BALANCE_CLEARED', 'WINNER_PAID', 'BANK_BALANCE'
    passed BOOLEAN,
    error_detail TEXT,
    operands TEXT,  -- JSON of expected and observed values
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (round_id) REFERENCES rounds(round_id)
);

CREATE INDEX IF NOT EXISTS idx_settlements_round ON settlements(round_id);
CREATE INDEX IF NOT EXISTS idx_results_round ON verification_results(round_id);
"""


def default_db_path() -> Path:
    """Default database location, ``~/.tablewatch/verification.db``."""
    return Path.home() / ".tablewatch" / "verification.db"


def initialize_database(db_path: Optional[str] = None) -> sqlite3.Connection:
    """
    Open a database and make sure the schema exists.

    Args:
        db_path: Path to the database file; ":memory:" for a throwaway database.
            Parent directories are created as needed.

    Returns:
        An open connection with `sqlite3.Row` as row factory
    """
    path = db_path or str(default_db_path())
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.executescript(SCHEMA_SQL)
    conn.commit()
    return conn
