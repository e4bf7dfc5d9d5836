"""
Settlement verification for tablewatch.

This package checks that the ledger settled each round consistently with the
outcome it reported, records the verdicts in SQLite, and summarises them.
"""

from tablewatch.verification.verifier import (
    PlayerBaseline,
    SettlementObservation,
    SettlementReport,
    SettlementVerifier,
    VerificationResult,
    VerificationType,
)
from tablewatch.verification.round import (
    RoundBaseline,
    RoundObservation,
    RoundRecord,
    RoundRecorder,
)
from tablewatch.verification.storage import SQLiteSettlementStore
from tablewatch.verification.statistics import (
    AnalysisType,
    ConfidenceInterval,
    SettlementStatistics,
)

__all__ = [
    "PlayerBaseline",
    "SettlementObservation",
    "SettlementReport",
    "SettlementVerifier",
    "VerificationResult",
    "VerificationType",
    "RoundBaseline",
    "RoundObservation",
    "RoundRecord",
    "RoundRecorder",
    "SQLiteSettlementStore",
    "AnalysisType",
    "ConfidenceInterval",
    "SettlementStatistics",
]
