"""Interactive review of pending match candidates.

``review_pending_matches`` walks the engine's pending set in merge order and
resolves each candidate: auto-confirms those at or above an optional
confidence threshold, and asks ``decide`` about the rest. The engine does all
mutation; this module only sequences operator decisions and tallies them.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from functools import partial
from typing import TypeAlias

from .engine import ReconciliationEngine
from .errors import ReconciliationError
from .logging_setup import get_logger
from .models import ActionResult, MatchCandidate, Side, TransactionRecord
from .term_ui import Decision, prompt_match_decision

DecideFn: TypeAlias = Callable[[MatchCandidate, TransactionRecord, TransactionRecord], Decision]

_logger = get_logger("ledger_recon.review")


@dataclass(slots=True)
class ReviewSummary:
    """Tally of one review pass. ``warnings`` holds non-fatal confirm failures."""

    confirmed: list[MatchCandidate] = field(default_factory=list)
    dismissed: list[MatchCandidate] = field(default_factory=list)
    skipped: list[MatchCandidate] = field(default_factory=list)
    auto_confirmed: int = 0
    warnings: list[ReconciliationError] = field(default_factory=list)


def _record_confirm(summary: ReviewSummary, result: ActionResult) -> None:
    if result.linked:
        summary.confirmed.append(result.candidate)
    elif result.error is not None:
        summary.warnings.append(result.error)


def review_pending_matches(
    engine: ReconciliationEngine,
    *,
    decide: DecideFn | None = None,
    auto_confirm_confidence: float | None = None,
    on_progress: Callable[[str], None] | None = None,
    currency: str = "SAR",
) -> ReviewSummary:
    """Resolve every pending candidate once.

    Parameters
    ----------
    engine:
        Engine whose pending candidates are reviewed.
    decide:
        Callback returning ``"confirm"``, ``"dismiss"`` or ``"skip"`` for a
        candidate and its two records. Defaults to the interactive
        :func:`~ledger_recon.term_ui.prompt_match_decision`.
    auto_confirm_confidence:
        When set, candidates with ``confidence >= auto_confirm_confidence`` are
        confirmed without asking.
    on_progress:
        Optional callable receiving short status lines (e.g., ``print``).
    currency:
        Currency code shown next to amounts by the default prompt.

    Skipped candidates stay pending.
    """

    decide_fn: DecideFn = decide or partial(prompt_match_decision, currency=currency)
    summary = ReviewSummary()
    store = engine.store

    for cand in engine.pending_candidates:
        if auto_confirm_confidence is not None and cand.confidence >= auto_confirm_confidence:
            result = engine.confirm_match(cand)
            _record_confirm(summary, result)
            if result.linked:
                summary.auto_confirmed += 1
                if on_progress:
                    on_progress(
                        f"Auto-confirmed {cand.bank_record_id} -> {cand.ledger_record_id} "
                        f"({cand.confidence:.2f})"
                    )
            continue

        bank = store.find(Side.BANK, cand.bank_record_id)
        ledger = store.find(Side.LEDGER, cand.ledger_record_id)
        if bank is None or ledger is None:
            # Records vanished; confirming drops the candidate and reports why.
            _record_confirm(summary, engine.confirm_match(cand))
            continue

        choice = decide_fn(cand, bank, ledger)
        if choice == "confirm":
            _record_confirm(summary, engine.confirm_match(cand))
        elif choice == "dismiss":
            if engine.dismiss_match(cand).removed:
                summary.dismissed.append(cand)
        else:
            summary.skipped.append(cand)

    for warning in summary.warnings:
        if on_progress:
            on_progress(f"Warning: {warning.message}")
    _logger.info(
        "review:done confirmed=%d auto=%d dismissed=%d skipped=%d warnings=%d",
        len(summary.confirmed),
        summary.auto_confirmed,
        len(summary.dismissed),
        len(summary.skipped),
        len(summary.warnings),
    )
    return summary


__all__ = ["ReviewSummary", "review_pending_matches", "DecideFn"]
