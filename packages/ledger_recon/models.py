"""Data models for ``ledger_recon``.

Transaction records appear in two roles: the *bank feed* (externally sourced)
and the *internal ledger* (recorded by the business). Both use the same
immutable :class:`TransactionRecord`; the collection a record lives in decides
its role. Match candidates are transient proposals produced by a matching
oracle and held by the engine until an operator confirms or dismisses them.

Result objects (:class:`AutoMatchResult`, :class:`ActionResult`) make the
outcome of every engine operation explicit so callers do not rely on raised
exceptions for control flow.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from .errors import InvalidCandidate, OracleUnavailable, ReconciliationError


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TransactionKind(StrEnum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"

    @classmethod
    def from_amount(cls, amount: Decimal) -> TransactionKind:
        """Derive the kind from the sign (negative = outflow = DEBIT)."""

        return cls.DEBIT if amount < 0 else cls.CREDIT


class Side(StrEnum):
    """Which collection a record belongs to."""

    BANK = "BANK"
    LEDGER = "LEDGER"

    @property
    def other(self) -> Side:
        return Side.LEDGER if self is Side.BANK else Side.BANK


# ---------------------------------------------------------------------------
# Core records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """A single bank-feed or ledger transaction.

    Attributes
    ----------
    id:
        Opaque identifier, unique within its collection and stable for the
        record's lifetime.
    date:
        Calendar date of the transaction.
    description:
        Free-text label as provided by the source.
    amount:
        Signed decimal amount; negative is an outflow, positive an inflow.
    kind:
        Explicit CREDIT/DEBIT marker carried from the source.
    category:
        Optional classification (ledger records only).
    linked_counterpart_id:
        Id of the record in the *other* collection this record has been
        reconciled against. Its presence is the only "reconciled" marker.
    """

    id: str
    date: date
    description: str
    amount: Decimal
    kind: TransactionKind
    category: str | None = None
    linked_counterpart_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("TransactionRecord.id must be a non-empty string")
        if not isinstance(self.amount, Decimal):
            raise TypeError(f"TransactionRecord.amount must be a Decimal (id={self.id!r})")

    @property
    def is_linked(self) -> bool:
        return self.linked_counterpart_id is not None


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """A proposed, not-yet-confirmed pairing of one bank and one ledger record."""

    bank_record_id: str
    ledger_record_id: str
    confidence: float
    rationale: str

    def record_id(self, side: Side) -> str:
        return self.bank_record_id if side is Side.BANK else self.ledger_record_id


# ---------------------------------------------------------------------------
# Oracle response DTO
# ---------------------------------------------------------------------------


class OracleMatch(BaseModel):
    """Typed, validated model of a single match proposed by an LLM oracle."""

    model_config = ConfigDict(strict=True, extra="ignore", str_strip_whitespace=True)

    bank_record_id: str
    ledger_record_id: str
    confidence: float
    rationale: str

    @field_validator("bank_record_id", "ledger_record_id", "rationale")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must be non-empty")
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence_in_unit_interval(cls, v: object) -> float:
        # JSON numbers may decode as int (0 or 1); strict mode would reject them.
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError("confidence must be a number")
        fv = float(v)
        if 0.0 <= fv <= 1.0:
            return fv
        raise ValueError("confidence must be within [0,1]")

    def to_candidate(self) -> MatchCandidate:
        return MatchCandidate(
            bank_record_id=self.bank_record_id,
            ledger_record_id=self.ledger_record_id,
            confidence=self.confidence,
            rationale=self.rationale,
        )


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


class AutoMatchStatus(StrEnum):
    COMPLETED = "completed"
    SKIPPED_EMPTY = "skipped_empty"
    BUSY = "busy"
    ORACLE_UNAVAILABLE = "oracle_unavailable"
    ABANDONED = "abandoned"


@dataclass(frozen=True, slots=True)
class AutoMatchResult:
    """Outcome of one ``run_auto_match`` call.

    ``added`` holds the candidates merged into the pending set in oracle order.
    ``rejected`` holds candidates discarded as contract violations. ``skipped``
    holds valid proposals left out because their bank or ledger record already
    had a pending candidate, or was linked while the oracle was working.
    ``error`` is set only for :attr:`AutoMatchStatus.ORACLE_UNAVAILABLE`.
    """

    status: AutoMatchStatus
    added: tuple[MatchCandidate, ...] = ()
    rejected: tuple[InvalidCandidate, ...] = ()
    skipped: tuple[MatchCandidate, ...] = ()
    error: OracleUnavailable | None = None

    @property
    def ok(self) -> bool:
        return self.status in (AutoMatchStatus.COMPLETED, AutoMatchStatus.SKIPPED_EMPTY)


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Outcome of ``confirm_match`` / ``dismiss_match``.

    ``removed`` tells whether the candidate left the pending set; ``linked``
    whether both records were linked. A confirm whose link failed still removes
    the candidate and carries the failure in ``error`` as a warning.
    """

    candidate: MatchCandidate
    removed: bool
    linked: bool = False
    error: ReconciliationError | None = None

    @property
    def ok(self) -> bool:
        return self.removed and self.error is None


@dataclass(frozen=True, slots=True)
class StoreCounts:
    bank: int
    ledger: int
    linked_pairs: int


__all__ = [
    "TransactionKind",
    "Side",
    "TransactionRecord",
    "MatchCandidate",
    "OracleMatch",
    "AutoMatchStatus",
    "AutoMatchResult",
    "ActionResult",
    "StoreCounts",
]
