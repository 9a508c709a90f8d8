"""Public interface for the ``ledger_recon`` package.

Bank-feed / ledger reconciliation: a :class:`LedgerStore` holding both
collections, a :class:`ReconciliationEngine` that merges proposals from a
:class:`MatchingOracle` into a pending set, and operator confirm/dismiss
actions that link records. Only symbol re-exports live here.
"""

from .engine import ReconciliationEngine
from .errors import (
    CandidateNotPending,
    InvalidCandidate,
    OracleUnavailable,
    ReconciliationError,
    RecordAlreadyLinked,
    RecordNotFound,
)
from .models import (
    ActionResult,
    AutoMatchResult,
    AutoMatchStatus,
    MatchCandidate,
    Side,
    StoreCounts,
    TransactionKind,
    TransactionRecord,
)
from .oracle import AmountDateOracle, MatchingOracle, TimeoutOracle
from .settings import ReconSettings
from .store import LedgerStore

__all__ = [
    # Core
    "LedgerStore",
    "ReconciliationEngine",
    "MatchingOracle",
    "AmountDateOracle",
    "TimeoutOracle",
    "ReconSettings",
    # Models
    "TransactionKind",
    "TransactionRecord",
    "MatchCandidate",
    "Side",
    "AutoMatchStatus",
    "AutoMatchResult",
    "ActionResult",
    "StoreCounts",
    # Errors
    "ReconciliationError",
    "OracleUnavailable",
    "RecordNotFound",
    "RecordAlreadyLinked",
    "InvalidCandidate",
    "CandidateNotPending",
]
