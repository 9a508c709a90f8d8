"""Matching oracle interface and the non-LLM oracles.

The engine depends only on :class:`MatchingOracle`: one async method that takes
the unlinked bank and ledger records and proposes candidate pairings. The LLM
implementation lives in :mod:`ledger_recon.openai_oracle`; this module holds
the deterministic rules oracle used offline and the timeout wrapper callers
use to bound a slow oracle.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from decimal import Decimal
from typing import Protocol, runtime_checkable

from .errors import InvalidCandidate, OracleUnavailable
from .logging_setup import get_logger
from .models import MatchCandidate, TransactionRecord

_logger = get_logger("ledger_recon.oracle")


@runtime_checkable
class MatchingOracle(Protocol):
    """Proposes pairings between unlinked bank and ledger records.

    Implementations may be slow and may fail (raise). They must not mutate the
    records passed in and must only reference ids present in them. An item the
    oracle could not decode may be returned as an :class:`InvalidCandidate`;
    the engine reports it with the other rejected proposals.
    """

    async def propose_matches(
        self,
        bank_records: Sequence[TransactionRecord],
        ledger_records: Sequence[TransactionRecord],
    ) -> Sequence[MatchCandidate | InvalidCandidate]: ...


class AmountDateOracle:
    """Rules oracle: same sign, amount within tolerance, date within a window.

    Each bank record (in order) is paired with the first unused ledger record
    that qualifies, preferring the smallest date distance and then the smallest
    amount difference. Exact amount on the same day scores 1.0; every day of
    distance costs 0.1 and a non-zero amount difference costs a further 0.1,
    floored at 0.5.
    """

    def __init__(
        self,
        *,
        date_tolerance_days: int = 3,
        amount_tolerance: Decimal = Decimal("0.01"),
    ) -> None:
        if date_tolerance_days < 0:
            raise ValueError("date_tolerance_days must be >= 0")
        if amount_tolerance < 0:
            raise ValueError("amount_tolerance must be >= 0")
        self.date_tolerance_days = date_tolerance_days
        self.amount_tolerance = amount_tolerance

    async def propose_matches(
        self,
        bank_records: Sequence[TransactionRecord],
        ledger_records: Sequence[TransactionRecord],
    ) -> list[MatchCandidate]:
        used: set[str] = set()
        out: list[MatchCandidate] = []
        for bank in bank_records:
            best: tuple[int, Decimal, int] | None = None
            best_ledger: TransactionRecord | None = None
            for pos, ledger in enumerate(ledger_records):
                if ledger.id in used:
                    continue
                if (bank.amount < 0) != (ledger.amount < 0):
                    continue
                amount_diff = abs(bank.amount - ledger.amount)
                if amount_diff > self.amount_tolerance:
                    continue
                day_diff = abs((bank.date - ledger.date).days)
                if day_diff > self.date_tolerance_days:
                    continue
                key = (day_diff, amount_diff, pos)
                if best is None or key < best:
                    best, best_ledger = key, ledger
            if best is None or best_ledger is None:
                continue

            day_diff, amount_diff, _pos = best
            used.add(best_ledger.id)
            out.append(
                MatchCandidate(
                    bank_record_id=bank.id,
                    ledger_record_id=best_ledger.id,
                    confidence=self._score(day_diff, amount_diff),
                    rationale=self._explain(day_diff, amount_diff),
                )
            )
        _logger.debug(
            "rules_oracle:done bank=%d ledger=%d proposed=%d",
            len(bank_records),
            len(ledger_records),
            len(out),
        )
        return out

    @staticmethod
    def _score(day_diff: int, amount_diff: Decimal) -> float:
        score = 1.0 - 0.1 * day_diff - (0.1 if amount_diff else 0.0)
        return round(max(0.5, score), 2)

    @staticmethod
    def _explain(day_diff: int, amount_diff: Decimal) -> str:
        amount_part = "exact amount" if not amount_diff else f"amount within {amount_diff}"
        if day_diff == 0:
            return f"{amount_part}, same date"
        unit = "day" if day_diff == 1 else "days"
        return f"{amount_part}, dates {day_diff} {unit} apart"


class TimeoutOracle:
    """Bound another oracle's call time; expiry surfaces as ``OracleUnavailable``."""

    def __init__(self, inner: MatchingOracle, timeout_sec: float) -> None:
        if timeout_sec <= 0:
            raise ValueError("timeout_sec must be positive")
        self.inner = inner
        self.timeout_sec = timeout_sec

    async def propose_matches(
        self,
        bank_records: Sequence[TransactionRecord],
        ledger_records: Sequence[TransactionRecord],
    ) -> Sequence[MatchCandidate | InvalidCandidate]:
        try:
            async with asyncio.timeout(self.timeout_sec):
                return await self.inner.propose_matches(bank_records, ledger_records)
        except TimeoutError as e:
            raise OracleUnavailable(f"timed out after {self.timeout_sec:g}s") from e


__all__ = ["MatchingOracle", "AmountDateOracle", "TimeoutOracle"]
