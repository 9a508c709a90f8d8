"""Exception types for the reconciliation core.

All errors derive from :class:`ReconciliationError` and carry the identifiers
needed to diagnose them. Store primitives raise these; engine operations catch
them and report them through result objects instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import MatchCandidate, Side


class ReconciliationError(Exception):
    """Base exception with structured context for logging and display."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"error": type(self).__name__, "message": self.message}
        if self.context:
            result["context"] = self.context
        return result


class OracleUnavailable(ReconciliationError):
    """The matching oracle failed or timed out; no candidates were added."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Matching oracle unavailable: {detail}", context={"detail": detail})
        self.detail = detail


class RecordNotFound(ReconciliationError):
    """A record id does not resolve in the ledger store."""

    def __init__(self, side: Side, record_id: str) -> None:
        super().__init__(
            f"{side.value.lower()} record not found: {record_id!r}",
            context={"side": side.value, "record_id": record_id},
        )
        self.side = side
        self.record_id = record_id


class RecordAlreadyLinked(ReconciliationError):
    """Linking would break an existing pair held by one of the records."""

    def __init__(self, side: Side, record_id: str, counterpart_id: str) -> None:
        super().__init__(
            f"{side.value.lower()} record {record_id!r} is already linked to {counterpart_id!r}",
            context={
                "side": side.value,
                "record_id": record_id,
                "counterpart_id": counterpart_id,
            },
        )
        self.side = side
        self.record_id = record_id
        self.counterpart_id = counterpart_id


class InvalidCandidate(ReconciliationError):
    """The oracle proposed something that violates its contract."""

    def __init__(self, candidate: object, reason: str) -> None:
        super().__init__(
            f"invalid match candidate ({reason}): {candidate!r}",
            context={"reason": reason},
        )
        self.candidate = candidate
        self.reason = reason


class CandidateNotPending(ReconciliationError):
    """Confirm/dismiss was asked for a candidate that is not in the pending set."""

    def __init__(self, candidate: MatchCandidate) -> None:
        super().__init__(
            f"candidate is not pending: bank={candidate.bank_record_id!r} "
            f"ledger={candidate.ledger_record_id!r}",
            context={
                "bank_record_id": candidate.bank_record_id,
                "ledger_record_id": candidate.ledger_record_id,
            },
        )
        self.candidate = candidate


__all__ = [
    "ReconciliationError",
    "OracleUnavailable",
    "RecordNotFound",
    "RecordAlreadyLinked",
    "InvalidCandidate",
    "CandidateNotPending",
]
