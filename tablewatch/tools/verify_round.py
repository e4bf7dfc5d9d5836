#!/usr/bin/env python
"""
Round Settlement Verification Tool

Verifies the settlement of a recorded round: given the balances captured
before the round, the ledger's score report, and the balances observed after
it, checks that every settled player's ledger balance was cleared, that every
winner was paid, and that the bank moved by exactly the expected amount.

The round file is JSON with the keys ``pre_bank_balance``, ``players``
(``seat``, ``address``, ``pre_wallet_balance``), ``score_report``,
``post_table``, ``post`` (``bank_balance``, ``user_balances``,
``wallet_balances``) and optionally ``rules``.

Examples:
    # Verify a round with the rules stored in the file
    python -m tablewatch.tools.verify_round round.json

    # Override the bet and rake, and keep the verdict in a database
    python -m tablewatch.tools.verify_round round.json --bet 5000000 --rake 0.95 \
        --db verification.db

    # Summarise every round stored so far
    python -m tablewatch.tools.verify_round --db verification.db --stats
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from tablewatch.blackjack.rules import TableRules
from tablewatch.errors import TablewatchError
from tablewatch.verification.round import RoundRecord, RoundRecorder
from tablewatch.verification.statistics import SettlementStatistics
from tablewatch.verification.storage import SQLiteSettlementStore

logger = logging.getLogger("tablewatch.tools.verify_round")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Verify the settlement of a recorded blackjack round"
    )
    parser.add_argument("round_file", nargs="?", help="JSON file describing the round")
    parser.add_argument("--db", help="SQLite database to record the verdict in")
    parser.add_argument("--label", default="", help="Table label stored with the round")
    parser.add_argument("--bet", type=int, help="Bet amount per player, in minor units")
    parser.add_argument("--rake", help="Share of each swing the bank keeps (e.g. 0.9)")
    parser.add_argument(
        "--bonus", help="Multiplier paid on a winning score of 21 (e.g. 1.25)"
    )
    parser.add_argument(
        "--player-perspective",
        action="store_true",
        help="Read the score report's won flag as 'the player won'",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print statistics over the rounds stored in --db",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _rules_from_args(args: argparse.Namespace, stored: Optional[dict]) -> TableRules:
    config = dict(stored or {})
    if args.bet is not None:
        config["bet_amount"] = args.bet
    if args.rake is not None:
        config["rake"] = args.rake
    if args.bonus is not None:
        config["blackjack_bonus"] = args.bonus
    if args.player_perspective:
        config["won_flag_is_dealer_perspective"] = False
    return TableRules.from_dict(config)


def _print_stats(store: SQLiteSettlementStore, label: str) -> None:
    analyses = SettlementStatistics(store).run_all_analyses(label or None)
    print(json.dumps(analyses, indent=2))


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.round_file is None and not args.stats:
        parser.error("a round file is required unless --stats is given")
    if args.stats and not args.db:
        parser.error("--stats requires --db")

    store = SQLiteSettlementStore(args.db) if args.db else None
    try:
        if args.round_file is None:
            _print_stats(store, args.label)
            return 0

        try:
            with open(args.round_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(
                    f"round file must hold a JSON object, got {type(data).__name__}"
                )
            rules = _rules_from_args(args, data.get("rules"))
            record = RoundRecord.from_dict(data, rules)
            report = RoundRecorder(rules).verify(record)
        except (
            OSError,
            ValueError,
            TypeError,
            AttributeError,
            ArithmeticError,
            TablewatchError,
        ) as e:
            logger.error("Cannot verify %s: %s", args.round_file, e)
            print(f"ERROR: {e}", file=sys.stderr)
            return 2

        print(report)
        if store is not None:
            round_id = store.record_report(
                report, rules, record.observation.report, table_label=args.label
            )
            logger.info("Stored round %d in %s", round_id, args.db)
            if args.stats:
                _print_stats(store, args.label)

        return 0 if report.passed else 1
    finally:
        if store is not None:
            store.close()


if __name__ == "__main__":
    sys.exit(main())
