"""
tablewatch: a client that watches a ledger-backed blackjack table.

It polls the ledger for table snapshots, derives whose turn it is and what the
local player may do, and verifies the ledger's settlement after each round.
"""

__version__ = "0.1.0"
