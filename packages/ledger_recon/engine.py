"""Reconciliation engine: propose, confirm and dismiss bank/ledger matches.

Public API:
    - :class:`ReconciliationEngine`

The engine owns the pending match candidates (at most one per bank record,
first-write-wins) and delegates record storage and linking to a
:class:`~ledger_recon.store.LedgerStore`. Only :meth:`run_auto_match`
suspends (while awaiting the oracle); every other operation is synchronous
and completes without yielding to the event loop.

Every operation returns a result object; nothing here raises for expected
failures (oracle outages, contract violations, races with external changes).
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from .errors import (
    CandidateNotPending,
    InvalidCandidate,
    OracleUnavailable,
    RecordAlreadyLinked,
    RecordNotFound,
)
from .logging_setup import get_logger
from .models import (
    ActionResult,
    AutoMatchResult,
    AutoMatchStatus,
    MatchCandidate,
    Side,
    TransactionRecord,
)
from .oracle import MatchingOracle
from .store import LedgerStore

_logger = get_logger("ledger_recon.engine")


class ReconciliationEngine:
    """Orchestrates the match-propose / confirm / dismiss workflow."""

    def __init__(self, store: LedgerStore, oracle: MatchingOracle) -> None:
        self._store = store
        self._oracle = oracle
        # Keyed by bank record id; dict order is merge order.
        self._pending: dict[str, MatchCandidate] = {}
        self._in_flight = False
        self._closed = False

    # ---- State views ---------------------------------------------------------

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def pending_candidates(self) -> list[MatchCandidate]:
        return list(self._pending.values())

    @property
    def is_matching(self) -> bool:
        """True while an oracle call is in flight (UI disables the trigger)."""

        return self._in_flight

    @property
    def closed(self) -> bool:
        return self._closed

    def _pending_ids(self, side: Side) -> set[str]:
        if side is Side.BANK:
            return set(self._pending)
        return {c.ledger_record_id for c in self._pending.values()}

    def unlinked_bank(self) -> list[TransactionRecord]:
        """Bank records neither linked nor referenced by a pending candidate."""

        return self._store.unlinked_bank(exclude=self._pending_ids(Side.BANK))

    def unlinked_ledger(self) -> list[TransactionRecord]:
        """Ledger records neither linked nor referenced by a pending candidate."""

        return self._store.unlinked_ledger(exclude=self._pending_ids(Side.LEDGER))

    def candidate_for(self, record_id: str, side: Side) -> MatchCandidate | None:
        if side is Side.BANK:
            return self._pending.get(record_id)
        for cand in self._pending.values():
            if cand.ledger_record_id == record_id:
                return cand
        return None

    # ---- Auto-match ------------------------------------------------------------

    async def run_auto_match(self) -> AutoMatchResult:
        """Ask the oracle for pairings of the current unlinked records and merge them.

        Returns BUSY without calling the oracle when a call is already in
        flight, SKIPPED_EMPTY when either unlinked set is empty, and
        ORACLE_UNAVAILABLE (pending set untouched) when the oracle raises. If
        :meth:`close` is called while waiting, the oracle's answer is discarded
        and the status is ABANDONED.
        """

        if self._closed:
            return AutoMatchResult(status=AutoMatchStatus.ABANDONED)
        if self._in_flight:
            _logger.warning("auto_match:busy pending=%d", len(self._pending))
            return AutoMatchResult(status=AutoMatchStatus.BUSY)

        bank = self.unlinked_bank()
        ledger = self.unlinked_ledger()
        if not bank or not ledger:
            _logger.info("auto_match:skipped_empty bank=%d ledger=%d", len(bank), len(ledger))
            return AutoMatchResult(status=AutoMatchStatus.SKIPPED_EMPTY)

        _logger.info("auto_match:start bank=%d ledger=%d", len(bank), len(ledger))
        self._in_flight = True
        t0 = time.perf_counter()
        try:
            try:
                proposals = list(await self._oracle.propose_matches(bank, ledger))
            except OracleUnavailable as e:
                return self._oracle_failed(e, t0)
            except Exception as e:  # noqa: BLE001 - any oracle failure is an outage
                wrapped = OracleUnavailable(f"{e.__class__.__name__}: {e}")
                wrapped.__cause__ = e
                return self._oracle_failed(wrapped, t0)
        finally:
            self._in_flight = False

        if self._closed:
            _logger.info("auto_match:abandoned proposals=%d", len(proposals))
            return AutoMatchResult(status=AutoMatchStatus.ABANDONED)

        added, rejected, skipped = self._merge(proposals, bank, ledger)
        _logger.info(
            "auto_match:done added=%d rejected=%d skipped=%d pending=%d latency_ms=%.2f",
            len(added),
            len(rejected),
            len(skipped),
            len(self._pending),
            (time.perf_counter() - t0) * 1000.0,
        )
        return AutoMatchResult(
            status=AutoMatchStatus.COMPLETED,
            added=tuple(added),
            rejected=tuple(rejected),
            skipped=tuple(skipped),
        )

    def _oracle_failed(self, error: OracleUnavailable, t0: float) -> AutoMatchResult:
        _logger.error(
            "auto_match:oracle_failed latency_ms=%.2f error=%s",
            (time.perf_counter() - t0) * 1000.0,
            error.detail,
        )
        if self._closed:
            return AutoMatchResult(status=AutoMatchStatus.ABANDONED)
        return AutoMatchResult(status=AutoMatchStatus.ORACLE_UNAVAILABLE, error=error)

    def _merge(
        self,
        proposals: Sequence[object],
        bank_snapshot: Sequence[TransactionRecord],
        ledger_snapshot: Sequence[TransactionRecord],
    ) -> tuple[list[MatchCandidate], list[InvalidCandidate], list[MatchCandidate]]:
        """Merge proposals in oracle order; first write wins per bank and ledger id.

        Returns ``(added, rejected, skipped)``. ``skipped`` holds valid proposals
        that overlap a pending candidate or whose records were linked meanwhile.
        """

        bank_ids = {r.id for r in bank_snapshot}
        ledger_ids = {r.id for r in ledger_snapshot}
        claimed_ledger = self._pending_ids(Side.LEDGER)

        added: list[MatchCandidate] = []
        rejected: list[InvalidCandidate] = []
        skipped: list[MatchCandidate] = []
        for proposal in proposals:
            try:
                cand = _validated(proposal, bank_ids, ledger_ids)
            except InvalidCandidate as err:
                _logger.warning(
                    "auto_match:invalid_candidate reason=%s candidate=%r",
                    err.reason,
                    err.candidate,
                )
                rejected.append(err)
                continue

            if cand.bank_record_id in self._pending:
                reason = "duplicate_bank"
            elif cand.ledger_record_id in claimed_ledger:
                reason = "duplicate_ledger"
            elif self._became_linked(cand):
                reason = "stale"
            else:
                self._pending[cand.bank_record_id] = cand
                claimed_ledger.add(cand.ledger_record_id)
                added.append(cand)
                continue

            _logger.info(
                "auto_match:skipped reason=%s bank_id=%s ledger_id=%s",
                reason,
                cand.bank_record_id,
                cand.ledger_record_id,
            )
            skipped.append(cand)
        return added, rejected, skipped

    def _became_linked(self, cand: MatchCandidate) -> bool:
        bank = self._store.find(Side.BANK, cand.bank_record_id)
        ledger = self._store.find(Side.LEDGER, cand.ledger_record_id)
        return bank is None or ledger is None or bank.is_linked or ledger.is_linked

    # ---- Operator actions -----------------------------------------------------

    def _is_pending(self, candidate: MatchCandidate) -> bool:
        return self._pending.get(candidate.bank_record_id) == candidate

    def confirm_match(self, candidate: MatchCandidate) -> ActionResult:
        """Link the candidate's records and drop the candidate.

        If linking fails the candidate is still dropped (it can never succeed)
        and the failure is returned as a non-fatal ``error``.
        """

        if not self._is_pending(candidate):
            return ActionResult(
                candidate=candidate, removed=False, error=CandidateNotPending(candidate)
            )

        try:
            self._store.link(candidate.bank_record_id, candidate.ledger_record_id)
        except (RecordNotFound, RecordAlreadyLinked) as e:
            del self._pending[candidate.bank_record_id]
            _logger.warning(
                "confirm:link_failed bank_id=%s ledger_id=%s error=%s",
                candidate.bank_record_id,
                candidate.ledger_record_id,
                e.message,
            )
            return ActionResult(candidate=candidate, removed=True, linked=False, error=e)

        del self._pending[candidate.bank_record_id]
        _logger.info(
            "confirm:linked bank_id=%s ledger_id=%s confidence=%.2f",
            candidate.bank_record_id,
            candidate.ledger_record_id,
            candidate.confidence,
        )
        return ActionResult(candidate=candidate, removed=True, linked=True)

    def dismiss_match(self, candidate: MatchCandidate) -> ActionResult:
        """Drop the candidate; both records return to the unlinked pool."""

        if not self._is_pending(candidate):
            return ActionResult(
                candidate=candidate, removed=False, error=CandidateNotPending(candidate)
            )
        del self._pending[candidate.bank_record_id]
        _logger.info(
            "dismiss bank_id=%s ledger_id=%s",
            candidate.bank_record_id,
            candidate.ledger_record_id,
        )
        return ActionResult(candidate=candidate, removed=True)

    # ---- Lifecycle --------------------------------------------------------------

    def close(self) -> None:
        """Abandon any in-flight auto-match; its result will not be merged."""

        self._closed = True


def _validated(proposal: object, bank_ids: set[str], ledger_ids: set[str]) -> MatchCandidate:
    """Return ``proposal`` as a candidate, or raise ``InvalidCandidate``."""

    if isinstance(proposal, InvalidCandidate):
        raise proposal
    if not isinstance(proposal, MatchCandidate):
        raise InvalidCandidate(proposal, "not a MatchCandidate")
    conf = proposal.confidence
    if isinstance(conf, bool) or not isinstance(conf, (int, float)) or not 0.0 <= conf <= 1.0:
        raise InvalidCandidate(proposal, "confidence outside [0,1]")
    if proposal.bank_record_id not in bank_ids:
        raise InvalidCandidate(proposal, "unknown bank record id")
    if proposal.ledger_record_id not in ledger_ids:
        raise InvalidCandidate(proposal, "unknown ledger record id")
    return proposal


__all__ = ["ReconciliationEngine"]
